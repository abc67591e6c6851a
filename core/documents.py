"""Document paths for the per-user store layout."""

from __future__ import annotations


def user_path(user_id: str) -> str:
    return f"users/{user_id}"


def stocks_path(user_id: str) -> str:
    return f"users/{user_id}/data/stocks"


def summary_path(user_id: str) -> str:
    return f"users/{user_id}/data/stockSummary"


def todos_path(user_id: str) -> str:
    return f"users/{user_id}/todos"


def todo_path(user_id: str, task_id: str) -> str:
    return f"users/{user_id}/todos/{task_id}"


def news_path(user_id: str, task_id: str) -> str:
    return f"users/{user_id}/news/{task_id}"


def following_path(user_id: str) -> str:
    return f"following/{user_id}/userFollowing"


def followers_path(user_id: str) -> str:
    return f"followers/{user_id}/userFollowers"


def users_path() -> str:
    return "users"


def report_path(report_id: str) -> str:
    return f"reports/{report_id}"
