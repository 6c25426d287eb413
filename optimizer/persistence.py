"""
optimizer/persistence.py — text checkpoints of the policy distribution.

Checkpoint format (one line per slot, then the slot probabilities)::

    # update_size: 0.0213
    move: [clear(?X) AND clear(?Y) => move(?X, ?Y):0.75, <none>:0.25]
    @slots: [move:1.0]

Elite file format::

    value: -3.0
      clear(?X) AND clear(?Y) => move(?X, ?Y)

Loading never raises for I/O or format problems: the caller gets a
CheckpointLoad report and starts fresh.
"""

from __future__ import annotations

import logging
import pathlib
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from relational.errors import ErrorCode, ParseError
from relational.parsing import parse_rule
from relational.rules import RelationalRule, RuleArena

from .distribution import ProbabilityDistribution
from .policy import PolicyDistribution
from .slot import ABSENT, Slot

if TYPE_CHECKING:
    from domain.spec import DomainSpec

    from .updater import PolicyValue

logger = logging.getLogger(__name__)

ABSENT_TOKEN = "<none>"
SLOTS_KEY    = "@slots"

_LINE_RE    = re.compile(r"^(@?[A-Za-z_][\w\-]*):\s*\[(.*)\]\s*$")
_ELEMENT_RE = re.compile(r"\s*([^:]+?):\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)\s*(?:,|$)")
_COMMENT_RE = re.compile(r"^#\s*([\w ]+):\s*(.*)$")


@dataclass(slots=True)
class CheckpointLoad:
    """
    - distribution: the restored distribution (None → start fresh)
    - error:        what went wrong, None on success
    - code:         ErrorCode of the failure
    - metadata:     "# key: value" comment lines
    """
    distribution: PolicyDistribution | None
    error:        str | None = None
    code:         ErrorCode | None = None
    metadata:     dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.distribution is not None


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------

def _parse_elements(body: str, text: str) -> list[tuple[str, float]]:
    elements: list[tuple[str, float]] = []
    pos = 0
    body = body.strip()
    while pos < len(body):
        m = _ELEMENT_RE.match(body, pos)
        if not m:
            raise ParseError(f"Invalid distribution element near: '{body[pos:]}'", text)
        elements.append((m.group(1).strip(), float(m.group(2))))
        pos = m.end()
    return elements


def slot_to_line(slot: Slot, arena: RuleArena) -> str:
    parts: list[str] = []
    for rule_id, prob in slot.rules.items():
        label = ABSENT_TOKEN if rule_id is ABSENT else str(arena[rule_id])
        parts.append(f"{label}:{prob!r}")
    return f"{slot.action}: [{', '.join(parts)}]"


def parse_slot_line(
    line:   str,
    domain: DomainSpec | None = None,
) -> tuple[str, list[tuple[RelationalRule | None, float]]]:
    """(action, [(rule | None for the absent choice, probability), ...])."""
    m = _LINE_RE.match(line.strip())
    if not m or m.group(1) == SLOTS_KEY:
        raise ParseError(f"Invalid slot line: '{line}'", line)
    action = m.group(1)
    items: list[tuple[RelationalRule | None, float]] = []
    for label, prob in _parse_elements(m.group(2), line):
        if label == ABSENT_TOKEN:
            items.append((None, prob))
            continue
        rule = parse_rule(label, domain)
        if rule.action_name != action:
            raise ParseError(f"Rule '{label}' does not belong to slot '{action}'", line)
        items.append((rule, prob))
    return action, items


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------

def format_checkpoint(distribution: PolicyDistribution, metadata: dict[str, float] | None = None) -> str:
    lines = [f"# {key}: {value!r}" for key, value in (metadata or {}).items()]
    for slot in distribution:
        lines.append(slot_to_line(slot, distribution.arena))
    slot_probs = ", ".join(
        f"{distribution.slots[sid].action}:{prob!r}" for sid, prob in distribution.slot_probs.items()
    )
    lines.append(f"{SLOTS_KEY}: [{slot_probs}]")
    return "\n".join(lines) + "\n"


def parse_checkpoint(
    text:   str,
    domain: DomainSpec | None = None,
    seed:   int | None = None,
) -> tuple[PolicyDistribution, dict[str, str]]:
    """
    Raises:
        ParseError for malformed content.
    """
    distribution = PolicyDistribution(seed=seed)
    metadata:   dict[str, str]   = {}
    slot_probs: dict[str, float] | None = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            m = _COMMENT_RE.match(line)
            if m:
                metadata[m.group(1).strip()] = m.group(2).strip()
            continue
        if line.startswith(SLOTS_KEY):
            m = _LINE_RE.match(line)
            if not m:
                raise ParseError(f"Invalid slot probability line: '{line}'", line)
            slot_probs = dict(_parse_elements(m.group(2), line))
            continue

        action, items = parse_slot_line(line, domain)
        if distribution.slot_for(action) is not None:
            raise ParseError(f"Duplicate slot '{action}'", line)
        seed_rule = next((r for r, _ in items if r is not None), None)
        slot = distribution.add_slot(action, seed_rule)
        rules: ProbabilityDistribution[int | None] = ProbabilityDistribution()
        for rule, prob in items:
            key = ABSENT if rule is None else distribution.arena.add(rule).rule_id
            rules.add(key, prob)
        slot.rules = rules
        distribution.include_absent = distribution.include_absent or slot.has_absent

    if slot_probs is None:
        raise ParseError(f"Missing '{SLOTS_KEY}' line", text[:200])
    for slot in distribution:
        if slot.action not in slot_probs:
            raise ParseError(f"No probability for slot '{slot.action}'", text[:200])
        distribution.slot_probs.set_probability(slot.slot_id, slot_probs[slot.action])
    return distribution, metadata


def save_checkpoint(
    path:         str | pathlib.Path,
    distribution: PolicyDistribution,
    metadata:     dict[str, float] | None = None,
) -> None:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_checkpoint(distribution, metadata), encoding="utf-8")


def load_checkpoint(
    path:   str | pathlib.Path,
    domain: DomainSpec | None = None,
    seed:   int | None = None,
) -> CheckpointLoad:
    """Restores a distribution; problems are reported, never raised."""
    path = pathlib.Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("checkpoint %s not found, starting fresh", path)
        return CheckpointLoad(None, f"Checkpoint not found: {path}", ErrorCode.CHECKPOINT_MISSING)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("checkpoint %s unreadable (%s), starting fresh", path, e)
        return CheckpointLoad(None, f"Cannot read checkpoint {path}: {e}", ErrorCode.CHECKPOINT_CORRUPT)

    try:
        distribution, metadata = parse_checkpoint(text, domain, seed)
    except ValueError as e:
        logger.warning("checkpoint %s corrupt (%s), starting fresh", path, e)
        return CheckpointLoad(None, f"Corrupt checkpoint {path}: {e}", ErrorCode.CHECKPOINT_CORRUPT)
    return CheckpointLoad(distribution, metadata=metadata)


# ---------------------------------------------------------------------------
# Elites
# ---------------------------------------------------------------------------

def save_elites(path: str | pathlib.Path, elites: Sequence[PolicyValue], arena: RuleArena) -> None:
    lines: list[str] = []
    for pv in elites:
        lines.append(f"value: {pv.value!r}")
        lines.extend(f"  {rule}" for rule in pv.policy.describe(arena))
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def load_elites(
    path:   str | pathlib.Path,
    domain: DomainSpec | None = None,
) -> list[tuple[float, list[RelationalRule]]]:
    """
    Raises:
        OSError when the file cannot be read, ParseError for bad content.
    """
    elites: list[tuple[float, list[RelationalRule]]] = []
    for raw in pathlib.Path(path).read_text(encoding="utf-8").splitlines():
        if not raw.strip():
            continue
        if raw.startswith("value:"):
            try:
                elites.append((float(raw.split(":", 1)[1]), []))
            except ValueError:
                raise ParseError(f"Invalid elite value: '{raw}'", raw) from None
            continue
        if not elites:
            raise ParseError(f"Rule before any 'value:' line: '{raw}'", raw)
        elites[-1][1].append(parse_rule(raw.strip(), domain))
    return elites
