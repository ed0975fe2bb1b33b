"""
Session transcript with a bounded context window.

Turns are appended in user/assistant pairs only, so a reader never sees a
user turn without its answer.
"""

import threading

from dbsage.schemas.chat import ChatTurn, TurnRole

NO_RESULTS = "No results found."


class Transcript:
    """Append-only list of ChatTurn."""

    def __init__(self):
        self._turns: list[ChatTurn] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> list[ChatTurn]:
        """Snapshot copy of every turn, oldest first."""
        with self._lock:
            return list(self._turns)

    def append_exchange(self, user_turn: ChatTurn, assistant_turn: ChatTurn) -> None:
        if user_turn.role != TurnRole.USER or assistant_turn.role != TurnRole.ASSISTANT:
            raise ValueError("An exchange is one user turn followed by one assistant turn")
        with self._lock:
            self._turns.extend([user_turn, assistant_turn])

    def window(self, size: int) -> tuple[int, list[ChatTurn]]:
        """
        The most recent ``size`` turns.
        
        Returns:
            (number of older turns left out, turns in the window)
        """
        turns = self.turns
        if size <= 0:
            return len(turns), []
        recent = turns[-size:]
        return len(turns) - len(recent), recent


def render_turns(omitted: int, turns: list[ChatTurn]) -> str:
    """Prompt text for a transcript window ('' for an empty transcript)."""
    if not turns and not omitted:
        return ""

    lines = ["Conversation so far:"]
    if omitted:
        lines.append(f"[{omitted} earlier turns omitted]")
    for turn in turns:
        if turn.role == TurnRole.USER:
            lines.append(f"[User]: {turn.content}")
            continue
        lines.append(f"[Assistant]: {turn.content}")
        if turn.query:
            lines.append(f"  [Query executed]: {turn.query}")
        if turn.result and turn.result != NO_RESULTS:
            # Header line only; full results stay out of the prompt
            lines.append(f"  [Result]: {turn.result.splitlines()[0]}...")
    return "\n".join(lines)
