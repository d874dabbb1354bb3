"""Route gate: which view a session gets for a path.

``render(session, path)`` is pure and returns exactly one of:

- ``Loading``  while the identity check has not settled (no route mounted)
- ``Redirect`` when the matched route points somewhere else
- ``Page``     the view to draw, its path parameters and whether it goes
  inside the layout shell

Two ordered route tables exist; the first matching pattern wins and the
``*`` catch-all guarantees every path resolves to something.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union

from frontend.session import Session

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"
CATCH_ALL = "*"


class View(enum.Enum):
    LOGIN = "login"
    DASHBOARD = "dashboard"
    PATIENTS = "patients"
    PATIENT_DETAIL = "patient_detail"
    APPOINTMENTS = "appointments"
    TREATMENTS = "treatments"
    BILLING = "billing"
    STAFF = "staff"
    REPORTS = "reports"
    PROFILE = "profile"


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Redirect:
    to: str
    replace: bool = True


@dataclass(frozen=True)
class Page:
    view: View
    params: dict[str, str] = field(default_factory=dict)
    layout: bool = False


ViewTree = Union[Loading, Redirect, Page]
Target = Union[View, Redirect]


PUBLIC_ROUTES: tuple[tuple[str, Target], ...] = (
    (LOGIN_PATH, View.LOGIN),
    (CATCH_ALL, Redirect(LOGIN_PATH)),
)

PRIVATE_ROUTES: tuple[tuple[str, Target], ...] = (
    ("/", Redirect(DASHBOARD_PATH)),
    (DASHBOARD_PATH, View.DASHBOARD),
    ("/patients", View.PATIENTS),
    ("/patients/:id", View.PATIENT_DETAIL),
    ("/appointments", View.APPOINTMENTS),
    ("/treatments", View.TREATMENTS),
    ("/billing", View.BILLING),
    ("/staff", View.STAFF),
    ("/reports", View.REPORTS),
    ("/profile", View.PROFILE),
    (LOGIN_PATH, Redirect(DASHBOARD_PATH)),
    # no "not found" view: stale links land on the dashboard
    (CATCH_ALL, Redirect(DASHBOARD_PATH)),
)


def normalize(path: str | None) -> str:
    """'patients/?x=1' -> '/patients'; empty -> '/'."""
    path = (path or "").split("?", 1)[0].split("#", 1)[0].strip()
    path = "/" + path.strip("/")
    return path


def match(pattern: str, path: str) -> dict[str, str] | None:
    """Match a normalized path; ':name' segments capture, '*' matches anything."""
    if pattern == CATCH_ALL:
        return {}

    expected = pattern.strip("/").split("/")
    actual = path.strip("/").split("/")
    if len(expected) != len(actual):
        return None

    params: dict[str, str] = {}
    for want, got in zip(expected, actual):
        if want.startswith(":"):
            if not got:
                return None
            params[want[1:]] = got
        elif want != got:
            return None
    return params


def routes_for(session: Session) -> tuple[tuple[str, Target], ...]:
    return PRIVATE_ROUTES if session.user is not None else PUBLIC_ROUTES


def render(session: Session, path: str | None) -> ViewTree:
    if session.loading:
        return Loading()

    path = normalize(path)
    private = session.user is not None
    for pattern, target in routes_for(session):
        params = match(pattern, path)
        if params is None:
            continue
        if isinstance(target, Redirect):
            return target
        return Page(view=target, params=params, layout=private)

    # both tables end with a catch-all
    raise AssertionError(f"no route matched {path!r}")
