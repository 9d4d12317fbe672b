"""Tests for the intervention decision engine.

Covers the severity-to-intervention mapping, message templates, worst-issue
selection, the safety override, and escalation monotonicity.
"""

from __future__ import annotations

import itertools

import pytest

from agent_oversight.config import OversightConfig
from agent_oversight.intervention import (
    build_redirect_message,
    build_warning_message,
    decide,
    select_worst_issue,
)
from agent_oversight.intervention.decision import (
    PAUSE_ACTION,
    REDIRECT_TEMPLATES,
    TERMINATE_CRITICAL_ACTION,
    TERMINATE_SAFETY_ACTION,
)
from agent_oversight.models import InterventionType, Issue, IssueType, Severity

SEVERITIES = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


def make_issue(
    severity: Severity,
    issue_type: IssueType = IssueType.ERROR_SPIRAL,
    description: str = "12 errors in session output",
) -> Issue:
    return Issue(type=issue_type, severity=severity, description=description)


@pytest.fixture()
def manual() -> OversightConfig:
    return OversightConfig(auto_terminate=False)


@pytest.fixture()
def automatic() -> OversightConfig:
    return OversightConfig(auto_terminate=True)


# ---------------------------------------------------------------------------
# Severity mapping
# ---------------------------------------------------------------------------


class TestDecide:
    def test_no_issues(self, manual) -> None:
        assert decide([], manual).type == InterventionType.NONE

    def test_low_is_logged_only(self, manual) -> None:
        intervention = decide([make_issue(Severity.LOW)], manual)
        assert intervention.type == InterventionType.NONE
        assert intervention.action == ""

    def test_medium_warns(self, manual) -> None:
        intervention = decide([make_issue(Severity.MEDIUM)], manual)
        assert intervention.type == InterventionType.WARN
        assert intervention.reason == "12 errors in session output"
        assert "12 errors in session output" in intervention.action
        assert intervention.action.startswith("OVERSIGHT WARNING:")

    def test_high_redirects_with_template(self, manual) -> None:
        intervention = decide([make_issue(Severity.HIGH)], manual)
        assert intervention.type == InterventionType.REDIRECT
        assert intervention.action == REDIRECT_TEMPLATES[IssueType.ERROR_SPIRAL]
        assert "root cause" in intervention.action

    def test_critical_pauses_without_auto_terminate(self, manual) -> None:
        intervention = decide([make_issue(Severity.CRITICAL)], manual)
        assert intervention.type == InterventionType.PAUSE
        assert intervention.action == PAUSE_ACTION

    def test_critical_terminates_with_auto_terminate(self, automatic) -> None:
        intervention = decide([make_issue(Severity.CRITICAL)], automatic)
        assert intervention.type == InterventionType.TERMINATE
        assert intervention.reason == "12 errors in session output"
        assert intervention.action == TERMINATE_CRITICAL_ACTION

    @pytest.mark.parametrize("auto_terminate", [False, True])
    def test_safety_always_terminates(self, auto_terminate: bool) -> None:
        config = OversightConfig(auto_terminate=auto_terminate)
        safety = make_issue(
            Severity.CRITICAL,
            IssueType.SAFETY_VIOLATION,
            "Dangerous command detected: Fork bomb detected",
        )
        intervention = decide([safety], config)
        assert intervention.type == InterventionType.TERMINATE
        assert intervention.reason == "Safety violation: Dangerous command detected: Fork bomb detected"
        assert intervention.action == TERMINATE_SAFETY_ACTION

    def test_safety_wins_over_earlier_critical(self, manual) -> None:
        issues = [
            make_issue(Severity.CRITICAL, IssueType.COST_RUNAWAY, "over budget"),
            make_issue(Severity.CRITICAL, IssueType.SAFETY_VIOLATION, "rm -rf /"),
        ]
        intervention = decide(issues, manual)
        assert intervention.type == InterventionType.TERMINATE
        assert intervention.reason == "Safety violation: rm -rf /"

    def test_high_safety_issue_redirects(self, manual) -> None:
        safety = make_issue(Severity.HIGH, IssueType.SAFETY_VIOLATION, "suspicious")
        intervention = decide([safety], manual)
        assert intervention.type == InterventionType.REDIRECT
        assert "avoid dangerous operations" in intervention.action

    def test_worst_issue_wins(self, manual) -> None:
        issues = [
            make_issue(Severity.MEDIUM, IssueType.STALL_DETECTED, "stalled"),
            make_issue(Severity.HIGH, IssueType.INFINITE_LOOP, "looping"),
            make_issue(Severity.LOW, IssueType.TASK_DEVIATION, "drifting"),
        ]
        intervention = decide(issues, manual)
        assert intervention.type == InterventionType.REDIRECT
        assert intervention.reason == "looping"
        assert "different approach" in intervention.action


# ---------------------------------------------------------------------------
# Worst-issue selection
# ---------------------------------------------------------------------------


class TestSelectWorstIssue:
    def test_empty(self) -> None:
        assert select_worst_issue([]) is None

    def test_ties_go_to_first_registered(self) -> None:
        loop = make_issue(Severity.HIGH, IssueType.INFINITE_LOOP, "loop")
        cost = make_issue(Severity.HIGH, IssueType.COST_RUNAWAY, "cost")
        assert select_worst_issue([loop, cost]) is loop
        assert select_worst_issue([cost, loop]) is cost

    def test_tie_break_decides_template(self, manual) -> None:
        loop = make_issue(Severity.HIGH, IssueType.INFINITE_LOOP, "loop")
        cost = make_issue(Severity.HIGH, IssueType.COST_RUNAWAY, "cost")
        assert decide([cost, loop], manual).action == REDIRECT_TEMPLATES[IssueType.COST_RUNAWAY]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessages:
    def test_every_issue_type_has_a_redirect_template(self) -> None:
        for issue_type in IssueType:
            message = build_redirect_message(make_issue(Severity.HIGH, issue_type))
            assert message == REDIRECT_TEMPLATES[issue_type]

    def test_cost_and_time_templates(self) -> None:
        cost = build_redirect_message(make_issue(Severity.HIGH, IssueType.COST_RUNAWAY))
        time = build_redirect_message(make_issue(Severity.HIGH, IssueType.TIME_RUNAWAY))
        assert "wrap up" in cost
        assert "prioritize" in time

    def test_deviation_template(self) -> None:
        message = build_redirect_message(make_issue(Severity.HIGH, IssueType.TASK_DEVIATION))
        assert "refocus on the original task" in message

    def test_warning_strips_trailing_period(self) -> None:
        message = build_warning_message(make_issue(Severity.MEDIUM, description="Progress stalled."))
        assert "Progress stalled. Please review" in message
        assert ".." not in message


# ---------------------------------------------------------------------------
# Escalation properties
# ---------------------------------------------------------------------------


ISSUE_TYPES = list(IssueType)


class TestEscalationMonotonicity:
    @pytest.mark.parametrize("auto_terminate", [False, True])
    def test_raising_any_severity_never_weakens_the_response(self, auto_terminate: bool) -> None:
        config = OversightConfig(auto_terminate=auto_terminate)
        base_sets = [
            [(IssueType.INFINITE_LOOP, Severity.LOW)],
            [(IssueType.COST_RUNAWAY, Severity.MEDIUM), (IssueType.STALL_DETECTED, Severity.LOW)],
            [
                (IssueType.ERROR_SPIRAL, Severity.LOW),
                (IssueType.SAFETY_VIOLATION, Severity.MEDIUM),
                (IssueType.TASK_DEVIATION, Severity.HIGH),
            ],
        ]

        for base in base_sets:
            issues = [make_issue(sev, typ, f"{typ.value} issue") for typ, sev in base]
            baseline = decide(issues, config).type.rank

            for index, (typ, sev) in enumerate(base):
                for higher in SEVERITIES[SEVERITIES.index(sev) + 1:]:
                    raised = list(issues)
                    raised[index] = make_issue(higher, typ, f"{typ.value} issue")
                    assert decide(raised, config).type.rank >= baseline, (
                        f"{typ.value} {sev.value}->{higher.value} weakened the response"
                    )

    @pytest.mark.parametrize("auto_terminate", [False, True])
    def test_single_issue_ladder_is_non_decreasing(self, auto_terminate: bool) -> None:
        config = OversightConfig(auto_terminate=auto_terminate)
        for issue_type in ISSUE_TYPES:
            ranks = [
                decide([make_issue(sev, issue_type)], config).type.rank for sev in SEVERITIES
            ]
            assert ranks == sorted(ranks), issue_type

    def test_pairs_of_issues(self, manual) -> None:
        for (t1, s1), (t2, s2) in itertools.product(
            itertools.product(ISSUE_TYPES[:3], SEVERITIES), repeat=2
        ):
            issues = [make_issue(s1, t1), make_issue(s2, t2)]
            baseline = decide(issues, manual).type.rank
            for higher in SEVERITIES[SEVERITIES.index(s2) + 1:]:
                raised = [issues[0], make_issue(higher, t2)]
                assert decide(raised, manual).type.rank >= baseline
