import pytest

from frontend.routing import (
    DASHBOARD_PATH,
    LOGIN_PATH,
    Loading,
    Page,
    Redirect,
    View,
    match,
    normalize,
    render,
)
from frontend.session import Session

USER = {"id": "u1", "email": "admin@dentalcare.com", "role": "ADMIN"}

LOADING_SESSIONS = [Session(user=None, loading=True), Session(user=USER, loading=True)]
ANONYMOUS = Session(user=None, loading=False)
SIGNED_IN = Session(user=USER, loading=False)

UNKNOWN_PATHS = ["/nope", "/patients/1/edit", "/dashbaord", "/billing/old", "/a/b/c/d"]


@pytest.mark.parametrize("session", LOADING_SESSIONS)
@pytest.mark.parametrize("path", ["/", "/login", "/dashboard", "/patients/42", "/nope"])
def test_loading_renders_only_the_indicator(session: Session, path: str) -> None:
    assert render(session, path) == Loading()


@pytest.mark.parametrize("path", ["/", "/dashboard", "/patients", "/patients/42", "/profile", "/nope"])
def test_anonymous_is_sent_to_login(path: str) -> None:
    assert render(ANONYMOUS, path) == Redirect(LOGIN_PATH)


def test_anonymous_login_page_has_no_layout() -> None:
    assert render(ANONYMOUS, "/login") == Page(View.LOGIN, {}, layout=False)


def test_signed_in_login_goes_to_dashboard() -> None:
    assert render(SIGNED_IN, "/login") == Redirect(DASHBOARD_PATH)


def test_root_goes_to_dashboard() -> None:
    assert render(SIGNED_IN, "/") == Redirect(DASHBOARD_PATH)


@pytest.mark.parametrize("path", UNKNOWN_PATHS)
def test_unknown_paths_land_on_dashboard(path: str) -> None:
    first = render(SIGNED_IN, path)
    assert first == Redirect(DASHBOARD_PATH)

    # following the redirect, and doing it again, always ends on the dashboard page
    for _ in range(3):
        assert render(SIGNED_IN, first.to) == Page(View.DASHBOARD, {}, layout=True)


@pytest.mark.parametrize(
    "path, view",
    [
        ("/dashboard", View.DASHBOARD),
        ("/patients", View.PATIENTS),
        ("/appointments", View.APPOINTMENTS),
        ("/treatments", View.TREATMENTS),
        ("/billing", View.BILLING),
        ("/staff", View.STAFF),
        ("/reports", View.REPORTS),
        ("/profile", View.PROFILE),
    ],
)
def test_named_private_routes(path: str, view: View) -> None:
    tree = render(SIGNED_IN, path)
    assert isinstance(tree, Page)
    assert tree.view == view
    assert tree.layout is True


def test_patient_detail_captures_id_without_checking_it() -> None:
    tree = render(SIGNED_IN, "/patients/does-not-exist")
    assert tree == Page(View.PATIENT_DETAIL, {"id": "does-not-exist"}, layout=True)


def test_trailing_slash_and_query_are_ignored() -> None:
    assert render(SIGNED_IN, "/patients/?search=smith") == Page(View.PATIENTS, {}, layout=True)
    assert render(ANONYMOUS, "login/") == Page(View.LOGIN, {}, layout=False)


@pytest.mark.parametrize("raw, expected", [(None, "/"), ("", "/"), ("patients", "/patients"), ("/a/b/#x", "/a/b")])
def test_normalize(raw, expected) -> None:
    assert normalize(raw) == expected


def test_match() -> None:
    assert match("/patients/:id", "/patients/7") == {"id": "7"}
    assert match("/patients/:id", "/patients") is None
    assert match("/patients", "/patients/7") is None
    assert match("*", "/anything/at/all") == {}
    assert match("/", "/") == {}


def test_any_present_user_selects_the_private_table() -> None:
    bare = Session(user={}, loading=False)
    assert render(bare, "/login") == Redirect(DASHBOARD_PATH)
    assert render(bare, "/patients") == Page(View.PATIENTS, {}, layout=True)
