"""
Weighted voting over per-provider answers.

Ballots are ordered by provider priority (registry order). That order is the
final, deterministic tie-break wherever counts and weights cannot separate
two candidates, so resolve() is a pure function of its ballot.
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from .config import QuestionType
from .normalize import AFFIRMATIVE, NEGATIVE, canonical_value, format_choice

logger = logging.getLogger(__name__)

STRONG_MAJORITY = 3
PARTIAL_MAJORITY = 2
DEFAULT_SCORE_CAP = 500


class Vote(BaseModel):
    provider: str
    weight: int
    answer: Optional[str] = None
    value: Optional[str] = None  # canonical token or letter read from answer


class ConsensusResult(BaseModel):
    answer: str
    value: Optional[str] = None
    rule: str
    question_type: QuestionType
    ballot: List[Vote]
    tally: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


def build_ballot(
    answers: Dict[str, Optional[str]],
    weights: Dict[str, int],
    question_type: str,
) -> List[Vote]:
    return [
        Vote(
            provider=name,
            weight=weights.get(name, 0),
            answer=answer,
            value=canonical_value(answer, question_type),
        )
        for name, answer in answers.items()
    ]


def _tally(votes: Sequence[Vote]) -> Dict[str, Dict[str, Any]]:
    # Insertion order follows the first voter of each value, i.e. provider priority.
    tally: Dict[str, Dict[str, Any]] = {}
    for v in votes:
        bucket = tally.setdefault(v.value, {"votes": 0, "weight": 0, "providers": []})
        bucket["votes"] += 1
        bucket["weight"] += v.weight
        bucket["providers"].append(v.provider)
    return tally


def _format_tally(tally: Dict[str, Dict[str, Any]]) -> str:
    return ", ".join(f"{value}: {b['votes']} (weight {b['weight']})" for value, b in tally.items())


def _heaviest(candidates: Sequence[str], tally: Dict[str, Dict[str, Any]]) -> tuple[str, bool]:
    """Highest summed weight; ties go to the candidate listed first. Second item flags a tie."""
    best = candidates[0]
    tied = False
    for value in candidates[1:]:
        if tally[value]["weight"] > tally[best]["weight"]:
            best, tied = value, False
        elif tally[value]["weight"] == tally[best]["weight"]:
            tied = True
    return best, tied


def _top_pair(ballot: Sequence[Vote]) -> List[Vote]:
    return sorted(ballot, key=lambda v: -v.weight)[:2]


def _result(
    answer: str,
    rule: str,
    question_type: str,
    ballot: Sequence[Vote],
    tally: Optional[Dict[str, Dict[str, Any]]] = None,
    value: Optional[str] = None,
) -> ConsensusResult:
    return ConsensusResult(
        answer=answer,
        value=value,
        rule=rule,
        question_type=question_type,
        ballot=list(ballot),
        tally=tally or {},
    )


def _resolve_binary(ballot: Sequence[Vote], voted: List[Vote]) -> ConsensusResult:
    tally = _tally(voted)
    logger.info("Vote tally - %s", _format_tally(tally))
    empty = {"votes": 0, "weight": 0, "providers": []}
    yes = tally.get(AFFIRMATIVE, empty)
    no = tally.get(NEGATIVE, empty)

    def done(value: str, rule: str) -> ConsensusResult:
        return _result(value, rule, "binary", ballot, tally, value)

    if yes["votes"] >= STRONG_MAJORITY and yes["votes"] > no["votes"]:
        logger.info("Strong consensus: %s from %s", AFFIRMATIVE, ", ".join(yes["providers"]))
        return done(AFFIRMATIVE, "strong_majority")
    if no["votes"] >= STRONG_MAJORITY and no["votes"] > yes["votes"]:
        logger.info("Strong consensus: %s from %s", NEGATIVE, ", ".join(no["providers"]))
        return done(NEGATIVE, "strong_majority")

    if yes["votes"] == no["votes"]:
        if yes["weight"] != no["weight"]:
            winner = AFFIRMATIVE if yes["weight"] > no["weight"] else NEGATIVE
            logger.info("Tied votes, %s wins on weight (%d vs %d)", winner, yes["weight"], no["weight"])
            return done(winner, "weight_tiebreak")
        winner = voted[0].value
        logger.info("Tied votes and weight, %s wins on priority of %s", winner, voted[0].provider)
        return done(winner, "priority_tiebreak")

    first, second = _top_pair(ballot)
    if first.value and first.value == second.value:
        logger.info("Trusted pair %s and %s agree on %s", first.provider, second.provider, first.value)
        return done(first.value, "trusted_pair")

    winner = AFFIRMATIVE if yes["votes"] > no["votes"] else NEGATIVE
    logger.info("%s wins %d to %d", winner, max(yes["votes"], no["votes"]), min(yes["votes"], no["votes"]))
    return done(winner, "plurality")


def _resolve_choice(
    ballot: Sequence[Vote],
    voted: List[Vote],
    principals: Sequence[str],
) -> ConsensusResult:
    tally = _tally(voted)
    logger.info("Vote tally - %s", _format_tally(tally))

    def done(letter: str, rule: str) -> ConsensusResult:
        return _result(format_choice(letter), rule, "choice", ballot, tally, letter)

    strong = [letter for letter, b in tally.items() if b["votes"] >= STRONG_MAJORITY]
    if len(strong) == 1:
        logger.info("Strong consensus: %s from %s", strong[0], ", ".join(tally[strong[0]]["providers"]))
        return done(strong[0], "strong_majority")
    if len(strong) > 1:
        winner, tied = _heaviest(strong, tally)
        logger.info("Several letters with %d+ votes, %s wins on weight", STRONG_MAJORITY, winner)
        return done(winner, "priority_tiebreak" if tied else "weight_tiebreak")

    partial = [letter for letter, b in tally.items() if b["votes"] == PARTIAL_MAJORITY]
    if len(partial) == 1:
        letter = partial[0]
        if any(p in principals for p in tally[letter]["providers"]):
            logger.info("Partial consensus: %s from %s", letter, ", ".join(tally[letter]["providers"]))
            return done(letter, "partial_majority")

    if len(partial) > 1:
        for a, b in combinations(principals, 2):
            for letter in partial:
                providers = tally[letter]["providers"]
                if a in providers and b in providers:
                    logger.info("Trusted pair %s and %s agree on %s", a, b, letter)
                    return done(letter, "trusted_pair")
        winner, tied = _heaviest(partial, tally)
        logger.info("Several letters with %d votes, %s wins on weight", PARTIAL_MAJORITY, winner)
        return done(winner, "priority_tiebreak" if tied else "weight_tiebreak")

    logger.info("No clear consensus, using %s -> %s", voted[0].provider, voted[0].value)
    return done(voted[0].value, "priority")


def _resolve_discursive(
    ballot: Sequence[Vote],
    present: List[Vote],
    score_cap: int,
) -> ConsensusResult:
    best = present[0]
    best_score = -1
    for v in present:
        score = min(len(v.answer.strip()), score_cap)
        if score > best_score:
            best, best_score = v, score
    logger.info("Longest answer from %s (score %d)", best.provider, best_score)
    return _result(best.answer.strip(), "longest_answer", "discursive", ballot)


def resolve(
    ballot: Sequence[Vote],
    question_type: str,
    principals: Sequence[str] = (),
    score_cap: int = DEFAULT_SCORE_CAP,
) -> Optional[ConsensusResult]:
    """
    Reduce a ballot to one answer. Returns None only when nobody answered.

    Binary: strong majority (3+ and ahead), equal counts by weight, agreement
    of the two heaviest providers, then plain plurality.
    Choice: a single 3+ letter, several by weight; a single 2-vote letter
    backed by a principal provider; several 2-vote letters by principal-pair
    agreement then weight; otherwise the highest-priority voter.
    Discursive: the longest answer, length scored up to score_cap.
    """
    present = [v for v in ballot if v.answer and v.answer.strip()]
    if not present:
        logger.warning("No valid answer from any provider")
        return None
    if len(present) == 1:
        only = present[0]
        logger.info("Only one answer available, from %s", only.provider)
        return _result(only.answer, "single_answer", question_type, ballot, value=only.value)

    if question_type == "discursive":
        return _resolve_discursive(ballot, present, score_cap)

    voted = [v for v in present if v.value]
    if not voted:
        logger.warning("No answer could be normalized, using %s verbatim", present[0].provider)
        return _result(present[0].answer, "unparseable", question_type, ballot)

    if question_type == "binary":
        return _resolve_binary(ballot, voted)
    return _resolve_choice(ballot, voted, principals)
