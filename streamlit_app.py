from __future__ import annotations

import os

import streamlit as st
from dotenv import load_dotenv

from frontend.layout import layout_shell
from frontend.pages import VIEWS, PageContext
from frontend.routing import Loading, Page, Redirect, render
from frontend.session import AuthProvider

load_dotenv()

st.set_page_config(page_title="DentalCare Pro", page_icon="🦷", layout="wide")

API_BASE = os.getenv("API_BASE", f"http://localhost:{os.getenv('API_PORT', '5000')}")

provider = AuthProvider(st.session_state, API_BASE)



# Navigation (current path lives in ?path=...)

def navigate(path: str) -> None:
    st.query_params["path"] = path
    st.rerun()


def logout() -> None:
    provider.logout()
    navigate("/login")



# Route gate

session = provider.current()
tree = render(session, st.query_params.get("path", "/"))

if isinstance(tree, Loading):
    with st.spinner("Loading..."):
        provider.resolve()
    st.rerun()

elif isinstance(tree, Redirect):
    navigate(tree.to)

elif isinstance(tree, Page):
    ctx = PageContext(provider=provider, session=session, navigate=navigate, params=tree.params)
    try:
        if tree.layout:
            with layout_shell(session, tree.view, navigate, logout):
                VIEWS[tree.view](ctx)
        else:
            VIEWS[tree.view](ctx)
    except PermissionError as e:
        # token rejected mid-session: settle again as logged out
        provider.expire(str(e))
        st.rerun()
