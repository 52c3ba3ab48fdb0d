"""
ladder.py - Escalation ladder as a pure state machine.

States run INIT -> PASS1_DONE -> (ESCALATION_EVALUATED | SQUEEZE_EVALUATED)
-> FINAL. `advance` never renders anything: when a pass is needed it
returns the config to run in `Transition.run`, and the driver feeds the
resulting size back with `record_pass` before advancing again.

Rules:
- Primary pass only after the safety gate allows the config.
- Pass 1 not smaller than the original and no custom config: retry once
  with a more aggressive config, if that config is itself safe.
- Extreme level, pass 1 smaller but above the squeeze threshold: retry at
  a lower scale with the same quality, if safe.
- A candidate is adopted only when strictly smaller than everything before
  it; when nothing beats the original, the original is kept.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .models import AdaptiveConfig, CompressionLevel, Strategy
from .policy import CompressionPolicy, DEFAULT_POLICY, check_safety, escalate_config, squeeze_config


class LadderState(Enum):
    INIT = "init"
    PASS1_DONE = "pass1_done"
    ESCALATION_EVALUATED = "escalation_evaluated"
    SQUEEZE_EVALUATED = "squeeze_evaluated"
    FINAL = "final"


@dataclass(frozen=True)
class PassOutcome:
    index: int
    config: AdaptiveConfig
    size: int


@dataclass(frozen=True)
class LadderContext:
    original_size: int
    primary: AdaptiveConfig
    level: Optional[CompressionLevel] = None
    custom: bool = False
    override_safety: bool = False
    policy: CompressionPolicy = DEFAULT_POLICY
    passes: Tuple[PassOutcome, ...] = ()
    best: Optional[PassOutcome] = None
    strategy: str = ""
    blocked: bool = False

    @property
    def iterations(self) -> int:
        return len(self.passes)

    @property
    def adopted(self) -> Optional[AdaptiveConfig]:
        return self.best.config if self.best else None


@dataclass(frozen=True)
class Transition:
    state: LadderState
    context: LadderContext
    run: Optional[AdaptiveConfig] = None


def record_pass(ctx: LadderContext, config: AdaptiveConfig, size: int) -> LadderContext:
    """Context with one more completed pass."""
    outcome = PassOutcome(index=len(ctx.passes), config=config, size=size)
    return replace(ctx, passes=ctx.passes + (outcome,))


def _finalize(ctx: LadderContext) -> Transition:
    """Final guard: never keep a candidate that does not beat the original."""
    if ctx.best is None or ctx.best.size >= ctx.original_size:
        strategy = ctx.strategy if ctx.strategy in Strategy.UNCHANGED else Strategy.ABORTED
        ctx = replace(ctx, best=None, strategy=strategy)
    return Transition(LadderState.FINAL, ctx)


def _after_pass1(ctx: LadderContext) -> Transition:
    pass1 = ctx.passes[0]
    best = pass1 if pass1.size < ctx.original_size else None
    ctx = replace(ctx, best=best, strategy=Strategy.FIRST_PASS)

    if ctx.custom:
        return _finalize(ctx)

    if pass1.size >= ctx.original_size:
        aggressive = escalate_config(pass1.config, ctx.policy)
        if not check_safety(aggressive, ctx.override_safety, ctx.policy):
            ctx = replace(ctx, strategy=Strategy.PASS2_UNSAFE)
            return Transition(LadderState.ESCALATION_EVALUATED, ctx)
        return Transition(LadderState.ESCALATION_EVALUATED, ctx, run=aggressive)

    marginal = pass1.size > ctx.original_size * ctx.policy.squeeze_threshold
    if ctx.level is CompressionLevel.EXTREME and marginal:
        squeezed = squeeze_config(pass1.config, ctx.policy)
        if check_safety(squeezed, ctx.override_safety, ctx.policy):
            return Transition(LadderState.SQUEEZE_EVALUATED, ctx, run=squeezed)
        return Transition(LadderState.SQUEEZE_EVALUATED, ctx)

    return _finalize(ctx)


def _after_escalation(ctx: LadderContext) -> Transition:
    if ctx.iterations > 1:
        pass1, pass2 = ctx.passes[0], ctx.passes[-1]
        if pass2.size < ctx.original_size and pass2.size < pass1.size:
            ctx = replace(ctx, best=pass2, strategy=Strategy.ADAPTIVE_FALLBACK)
        else:
            ctx = replace(ctx, best=None, strategy=Strategy.NO_REDUCTION)
    return _finalize(ctx)


def _after_squeeze(ctx: LadderContext) -> Transition:
    if ctx.iterations > 1:
        squeezed = ctx.passes[-1]
        if ctx.best is not None and squeezed.size < ctx.best.size:
            ctx = replace(ctx, best=squeezed, strategy=Strategy.ADAPTIVE_SQUEEZE)
    return _finalize(ctx)


def advance(state: LadderState, ctx: LadderContext) -> Transition:
    """Pure transition function of the escalation ladder."""
    if state is LadderState.INIT:
        if not check_safety(ctx.primary, ctx.override_safety, ctx.policy):
            ctx = replace(ctx, blocked=True, strategy=Strategy.SAFETY_BLOCK)
            return Transition(LadderState.FINAL, ctx)
        return Transition(LadderState.PASS1_DONE, ctx, run=ctx.primary)

    if state is LadderState.PASS1_DONE:
        if not ctx.passes:
            raise ValueError("PASS1_DONE requires a recorded primary pass")
        return _after_pass1(ctx)

    if state is LadderState.ESCALATION_EVALUATED:
        return _after_escalation(ctx)

    if state is LadderState.SQUEEZE_EVALUATED:
        return _after_squeeze(ctx)

    return Transition(LadderState.FINAL, ctx)


def progress_window(pass_index: int) -> Tuple[float, float]:
    """(start, span) in percent for a pass; pass 1 fills the first half."""
    if pass_index == 0:
        return 0.0, 50.0
    return 50.0, 50.0
