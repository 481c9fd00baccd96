"""Deterministic coaching summaries built from fixed templates."""

from typing import Dict, List, Tuple

# (minimum composite, overall line); first match wins
OVERALL_LINES: List[Tuple[float, str]] = [
    (92.0, "Elite momentum transfer ({score:.0f}): the body sequences cleanly and the barrel does the work."),
    (85.0, "Advanced momentum transfer ({score:.0f}): the pattern is solid, what is left is fine tuning."),
    (75.0, "Above-average flow ({score:.0f}): energy moves through the chain with a small leak or two."),
    (60.0, "You create bat speed ({score:.0f}), but energy is lost on its way through the body."),
    (0.0, "The swing runs on effort rather than flow ({score:.0f}); energy is not yet travelling through the chain."),
]

LEAK_LINES: Dict[str, str] = {
    "ground": "There is {severity} leak in ground flow: the lower body is not loading and holding long enough to start the hips cleanly.",
    "power": "There is {severity} leak in power flow: the torso is not accepting what the hips started, so the core spins with them or dumps early.",
    "barrel": "There is {severity} leak in barrel flow: the hands and bat are not catching the energy coming up from the core.",
}

NEXT_STEPS: Dict[str, str] = {
    "ground": "Next step: load into the ground and hold it so the hips can fire on time.",
    "power": "Next step: let the hips start and the torso follow instead of turning everything at once.",
    "barrel": "Next step: let the barrel release late, as a reaction to the body rather than a push.",
}

SEVERITY_WORDS: Dict[str, str] = {
    "mild": "a mild",
    "moderate": "a moderate",
    "severe": "a severe",
}

BALANCED_LEAK_LINE = "Ground, power and barrel flow are balanced with no significant leak."
BALANCED_NEXT_STEP = "Next step: build consistency and let the pattern settle in with reps."


def overall_line(composite: float) -> str:
    """Overall assessment keyed on the composite score."""
    for minimum, template in OVERALL_LINES:
        if composite >= minimum:
            return template.format(score=composite)
    return OVERALL_LINES[-1][1].format(score=composite)


def coaching_summary(composite: float, main_leak: str, leak_severity: str) -> str:
    """
    Build the three-sentence coaching summary.

    Args:
        composite: Composite score.
        main_leak: "ground", "power", "barrel" or "none".
        leak_severity: Severity of the main leak.

    Returns:
        Summary text; identical inputs give identical text.
    """
    if main_leak == "none" or leak_severity == "none":
        return " ".join([overall_line(composite), BALANCED_LEAK_LINE, BALANCED_NEXT_STEP])

    leak_line = LEAK_LINES[main_leak].format(severity=SEVERITY_WORDS[leak_severity])
    return " ".join([overall_line(composite), leak_line, NEXT_STEPS[main_leak]])
