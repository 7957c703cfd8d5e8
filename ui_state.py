"""
Session-state helpers and remote actions for the MediHort page.

Every function here takes the state mapping explicitly. At runtime that is
``st.session_state``; the tests pass a plain dict. Nothing here renders:
streamlit_app.py wraps the actions in spinners and shows the queued notices.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

import pytz

from api_config import CHAT_TIMEZONE
from plant_auth import get_session
from plant_db import load_favorite_ids, load_plants, toggle_favorite

logger = logging.getLogger(__name__)

CHAT_TZ = pytz.timezone(CHAT_TIMEZONE)

VIEW_HOME = "home"
VIEW_SIGN_IN = "sign_in"

DEFAULTS = {
    "view": VIEW_HOME,
    "plants": [],
    "plants_loaded": False,
    "favorite_ids": set(),
    "favorites_user": None,
    "favorite_pending": None,
    "chat_history": [],
    "notices": [],
    "analysis": None,
}


def init_state(state: MutableMapping[str, Any]) -> None:
    for key, value in DEFAULTS.items():
        if key not in state:
            # fresh containers per session, never the shared default objects
            state[key] = value.copy() if isinstance(value, (list, set, dict)) else value


# ===== Notifications =====

def notify(state, title: str, description: Optional[str] = None, variant: str = "default") -> None:
    """Queues a transient notice; shown as a toast at the start of the next run."""
    state.setdefault("notices", []).append(
        {"title": title, "description": description, "variant": variant}
    )


def drain_notices(state) -> List[Dict[str, Any]]:
    notices = list(state.get("notices", []))
    state["notices"] = []
    return notices


def error_message(exc: BaseException, fallback: str) -> str:
    """Message text of a remote failure, or the fallback when it has none."""
    message = getattr(exc, "message", None)
    if not message or not isinstance(message, str):
        message = str(exc)
    return message.strip() or fallback


# ===== Plant list =====

def set_plants(state, plants: List[Dict[str, Any]]) -> None:
    # replace, never merge: the grid shows exactly the last completed fetch
    state["plants"] = list(plants)
    state["plants_loaded"] = True


# ===== Favorites =====

def favorite_busy(state) -> bool:
    return state.get("favorite_pending") is not None


def request_favorite_toggle(state, plant_id: str) -> bool:
    """Records a toggle for plant_id unless one is already in flight."""
    if favorite_busy(state):
        logger.debug("Ignoring favorite toggle for %s, %s still in flight",
                     plant_id, state["favorite_pending"])
        return False
    state["favorite_pending"] = plant_id
    return True


def finish_favorite_toggle(state) -> None:
    state["favorite_pending"] = None


def apply_favorite_change(state, plant_id: str, favorited: bool) -> None:
    favorite_ids = set(state.get("favorite_ids", set()))
    if favorited:
        favorite_ids.add(plant_id)
    else:
        favorite_ids.discard(plant_id)
    state["favorite_ids"] = favorite_ids


# ===== Chat =====

def _timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(CHAT_TZ)
    return now.strftime("%H:%M")


def chat_loading(state) -> bool:
    """True while the last message is a user turn still waiting for its reply."""
    history = state.get("chat_history") or []
    return bool(history) and history[-1].get("role") == "user" and not history[-1].get("failed")


def submit_chat_input(state, text: Optional[str], now: Optional[datetime] = None) -> bool:
    if not text or not text.strip() or chat_loading(state):
        return False
    state.setdefault("chat_history", []).append(
        {"role": "user", "content": text.strip(), "time": _timestamp(now)}
    )
    return True


def pending_chat_turn(state) -> Optional[Tuple[str, List[Dict[str, str]]]]:
    """
    Returns (message, prior_history) for an unanswered user turn, else None.

    prior_history holds only role/content of the turns before the message.
    """
    if not chat_loading(state):
        return None
    history = state["chat_history"]
    prior = [{"role": m["role"], "content": m["content"]} for m in history[:-1]]
    return history[-1]["content"], prior


def record_assistant_reply(state, reply: Optional[str], now: Optional[datetime] = None) -> None:
    if reply:
        state["chat_history"].append({"role": "assistant", "content": reply, "time": _timestamp(now)})
    else:
        # no reply text: the turn settles without an answer
        state["chat_history"][-1]["failed"] = True


def fail_chat_turn(state) -> None:
    if state.get("chat_history"):
        state["chat_history"][-1]["failed"] = True


# ===== Analysis dialog =====

def start_analysis(state, plant: Dict[str, Any]) -> None:
    state["analysis"] = {"plant": dict(plant), "analyzing": True}


def finish_analysis(state, insights: Optional[str]) -> None:
    analysis = state.get("analysis")
    if not analysis:
        return
    analysis["analyzing"] = False
    if insights:
        analysis["plant"]["ai_insights"] = insights


def close_analysis(state) -> None:
    state["analysis"] = None


# ===== Remote actions (catch-and-notify) =====
# Each action settles its own busy flag and reports failures as notices.

def load_plant_list(state, client) -> None:
    try:
        set_plants(state, load_plants(client))
    except Exception as e:
        logger.error("Failed to load plants: %s", e)
        notify(state, "Error", "Failed to load plants", variant="destructive")
        state["plants_loaded"] = True


def reload_favorites(state, client, user) -> None:
    user_id = getattr(user, "id", None)
    state["favorites_user"] = user_id
    if not user_id:
        state["favorite_ids"] = set()
        return
    try:
        state["favorite_ids"] = load_favorite_ids(client, user_id)
    except Exception as e:
        logger.warning("Failed to load favorites for %s: %s", user_id, e)
        notify(state, "Error", error_message(e, "Failed to load favorites"), variant="destructive")


def run_favorite_toggle(state, client) -> Optional[bool]:
    """
    Performs the pending favorite toggle. Returns the new favorited flag, or
    None when nothing changed (no pending toggle, signed out, or failure).
    """
    plant_id = state.get("favorite_pending")
    if plant_id is None:
        return None
    try:
        session = get_session(client)
        if not session:
            notify(state, "Authentication required", "Please sign in to save favorites.",
                   variant="destructive")
            return None

        is_favorited = plant_id in state.get("favorite_ids", set())
        favorited = toggle_favorite(client, session.user.id, plant_id, is_favorited)
        apply_favorite_change(state, plant_id, favorited)
        notify(state, "Added to favorites" if favorited else "Removed from favorites")
        reload_favorites(state, client, session.user)
        return favorited
    except Exception as e:
        logger.error("Favorite toggle failed for %s: %s", plant_id, e)
        notify(state, "Error", error_message(e, "Failed to update favorites"), variant="destructive")
        return None
    finally:
        finish_favorite_toggle(state)


def run_chat_turn(state, backend, access_token: Optional[str] = None) -> None:
    turn = pending_chat_turn(state)
    if turn is None:
        return
    message, prior_history = turn
    try:
        reply = backend.consult(message, prior_history, access_token=access_token)
        record_assistant_reply(state, reply)
    except Exception as e:
        logger.error("Consultant request failed: %s", e)
        fail_chat_turn(state)
        notify(state, "Error", error_message(e, "Failed to get response"), variant="destructive")


def run_analysis(state, backend, access_token: Optional[str] = None) -> None:
    analysis = state.get("analysis")
    if not analysis or not analysis.get("analyzing"):
        return
    insights = None
    try:
        insights = backend.analyze_plant(analysis["plant"], access_token=access_token)
    except Exception as e:
        logger.error("Analysis failed for %s: %s", analysis["plant"].get("name"), e)
        notify(state, "Error", "Failed to analyze plant", variant="destructive")
    finally:
        finish_analysis(state, insights)
