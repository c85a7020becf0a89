"""
Rule engines and the Simplifier.

A RuleEngine holds an ordered set of rules and rewrites expressions to a
fixed point with them. Engines compose with ``>>`` into a SequencedEngine
that runs each one to its own fixed point in turn. The Simplifier is the
standard three-phase sequence:

    pre >> processing >> post

Example:
    from symmath import Simplifier, Variable

    x = Variable("x")
    simplifier = Simplifier()
    simplifier.simplify(x + (1 + x))              # => (1 + (2 * x))

    result, trace = simplifier.simplify(x * x, trace=True)
    print(trace.format("rules"))

Tracing:
    ``simplify(expr, trace=True)`` returns ``(result, RewriteTrace)``.
    Tracing bypasses the memo cache so every rule application is recorded.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .expressions import Expression, as_expression
from .rewriter import (
    Rule, RuleMetadata, FoldFuncsType, EXACT_PRELUDE,
    DEFAULT_MAX_STEPS, DEFAULT_CACHE_BAND, rewriter, select_rule,
)
from .rules import pre_rules, processing_rules, post_rules

logger = logging.getLogger(__name__)


class RewriteStep:
    """A single step in a rewriting trace."""

    def __init__(self, metadata: RuleMetadata, before: Expression,
                 after: Expression, phase: str = ""):
        self.metadata = metadata
        self.before = before
        self.after = after
        self.phase = phase

    @property
    def rule_name(self) -> str:
        return self.metadata.name or "<anonymous>"

    def __repr__(self) -> str:
        return f"{self.rule_name}: {self.before} -> {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "phase": self.phase,
            "rule_name": self.metadata.name,
            "description": self.metadata.description,
            "before": str(self.before),
            "after": str(self.after),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing rule chain
        - format("rules"): just the rule names applied
        - format("verbose"): full details with before/after
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, initial: Optional[Expression] = None):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Expression] = initial
        self.final: Optional[Expression] = initial

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def extend(self, other: 'RewriteTrace'):
        self.steps.extend(other.steps)
        self.final = other.final

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return f"{self.initial} --[{', '.join(self.rules_applied())}]--> {self.final}"

        elif style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "chain":
            if not self.steps:
                return str(self.initial)
            parts = [str(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.rule_name})-->")
                parts.append(str(step.after))
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            where = f"[{step.phase}] " if step.phase else ""
            lines.append(f"  {i}. {where}{step}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        """Iterate over rewrite steps."""
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": str(self.initial),
            "final": str(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.rule_name] = counts.get(step.rule_name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Get list of rule names in order of application."""
        return [s.rule_name for s in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the rewriting."""
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


class RuleEngine:
    """
    An ordered set of rules rewritten to a fixed point.

    At every node the highest-priority matching rule fires; ties go to the
    rule registered first. Results are memoized for expressions within the
    cache's complexity band, and the cache is dropped whenever the rule set
    or the enabled groups change.

    Example:
        engine = RuleEngine("identities").load_rules([
            SimpleRule(add_zero, "add-zero", 90, tags=["identity"]),
        ])
        engine.simplify(x + 0)   # => x
    """

    def __init__(self, name: str = "", max_steps: Optional[int] = DEFAULT_MAX_STEPS,
                 cache_min_complexity: int = DEFAULT_CACHE_BAND[0],
                 cache_max_complexity: int = DEFAULT_CACHE_BAND[1]):
        """
        Initialize a RuleEngine.

        Args:
            name: Phase name used in traces, logs and errors
            max_steps: Ceiling on rule applications per call (None: unlimited)
            cache_min_complexity: Smallest complexity that is memoized
            cache_max_complexity: Largest complexity that is memoized
        """
        self.name = name
        self.max_steps = max_steps
        self._rules: List[Rule] = []
        self._rule_names: Dict[str, int] = {}  # Maps name -> index
        self._simplifier = None
        self._disabled_groups: set = set()
        self._cache: Dict[Expression, Expression] = {}
        self._cache_band = (cache_min_complexity, cache_max_complexity)
        self._stats = {"hits": 0, "misses": 0}

    def _invalidate(self) -> None:
        self._simplifier = None
        self.clear_cache()

    def add_rule(self, rule: Rule) -> 'RuleEngine':
        """Register a rule after all existing ones."""
        if rule.metadata.name:
            self._rule_names[rule.metadata.name] = len(self._rules)
        self._rules.append(rule)
        self._invalidate()
        return self

    def load_rules(self, rules: Iterable[Rule]) -> 'RuleEngine':
        """Register several rules in order."""
        for rule in rules:
            self.add_rule(rule)
        return self

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        if name in self._rule_names:
            return self._rules[self._rule_names[name]]
        return None

    @property
    def rules(self) -> List[Rule]:
        """Get all registered rules."""
        return self._rules.copy()

    def clear(self) -> 'RuleEngine':
        """Remove all rules (group settings are kept)."""
        self._rules = []
        self._rule_names = {}
        self._invalidate()
        return self

    # ============================================================
    # Group Management
    # ============================================================

    def disable_group(self, group: str) -> 'RuleEngine':
        """Disable all rules in a group."""
        self._disabled_groups.add(group)
        self._invalidate()
        return self

    def enable_group(self, group: str) -> 'RuleEngine':
        """Enable all rules in a group."""
        self._disabled_groups.discard(group)
        self._invalidate()
        return self

    def groups(self) -> set:
        """Return all group names used by rules."""
        all_groups = set()
        for rule in self._rules:
            all_groups.update(rule.metadata.tags)
        return all_groups

    @property
    def disabled_groups(self) -> set:
        return set(self._disabled_groups)

    def _is_rule_active(self, metadata: RuleMetadata,
                        groups: Optional[List[str]] = None) -> bool:
        """Check if a rule should be applied given current group settings.

        Args:
            metadata: The rule's metadata
            groups: If specified, only rules in these groups are active.
                    If None, use the disabled_groups setting.
        """
        if not metadata.tags:
            return True
        if groups is not None:
            return any(g in groups for g in metadata.tags)
        return not any(g in self._disabled_groups for g in metadata.tags)

    def _active_rules(self, groups: Optional[List[str]] = None) -> List[Rule]:
        return [r for r in self._rules if self._is_rule_active(r.metadata, groups)]

    # ============================================================
    # Rewriting
    # ============================================================

    def apply_once(self, expr: Expression,
                   groups: Optional[List[str]] = None) -> Tuple[Expression, Optional[RuleMetadata]]:
        """
        Apply at most one rule at the root of the expression.

        Does not recurse into subexpressions.

        Returns:
            Tuple of (result, metadata); metadata is None when no rule applied
        """
        rule = select_rule(self._active_rules(groups), expr)
        if rule is None:
            return expr, None
        return rule.transform(expr), rule.metadata

    def rules_matching(self, expr: Expression,
                       groups: Optional[List[str]] = None) -> List[Tuple[RuleMetadata, int]]:
        """
        Find all rules that could apply at the root of an expression.

        Useful for debugging and understanding why an expression isn't simplifying.

        Returns:
            List of (metadata, priority) for each rule that matches.
        """
        matching = []
        for rule in self._active_rules(groups):
            priority = rule.match(expr)
            if priority >= 0:
                matching.append((rule.metadata, priority))
        return matching

    def simplify(self, expr: Expression, trace: bool = False,
                 groups: Optional[List[str]] = None):
        """
        Rewrite an expression to this engine's fixed point.

        Args:
            expr: Expression to simplify (numbers and names are coerced)
            trace: If True, return (result, trace) tuple
            groups: If specified, only use rules from these groups
                (rules without tags are always used)

        Returns:
            Simplified expression, or (expression, trace) if trace=True

        Raises:
            SimplificationDidNotConverge: If max_steps is exceeded
        """
        expr = as_expression(expr)
        if trace:
            return self._simplify_with_trace(expr, groups)
        if groups is not None:
            return rewriter(self._active_rules(groups), max_steps=self.max_steps,
                            phase=self.name)(expr)
        if self._simplifier is None:
            self._simplifier = rewriter(
                self._active_rules(), cache=self._cache, cache_band=self._cache_band,
                max_steps=self.max_steps, phase=self.name, stats=self._stats)
        result = self._simplifier(expr)
        logger.debug("%s: cache %d entries, %d hits, %d misses", self.name or "engine",
                     len(self._cache), self._stats["hits"], self._stats["misses"])
        return result

    def _simplify_with_trace(self, expr: Expression,
                             groups: Optional[List[str]] = None) -> Tuple[Expression, RewriteTrace]:
        rewrite_trace = RewriteTrace(expr)

        def record(rule: Rule, before: Expression, after: Expression) -> None:
            rewrite_trace.add_step(RewriteStep(rule.metadata, before, after, self.name))

        simplify = rewriter(self._active_rules(groups), max_steps=self.max_steps,
                            on_step=record, phase=self.name)
        result = simplify(expr)
        rewrite_trace.final = result
        return result, rewrite_trace

    def __call__(self, expr: Expression, **kwargs):
        return self.simplify(expr, **kwargs)

    # ============================================================
    # Cache
    # ============================================================

    def cache_info(self) -> Dict[str, int]:
        """Memo cache statistics: size, hits and misses."""
        return {"size": len(self._cache), **self._stats}

    def clear_cache(self) -> None:
        self._cache.clear()
        self._stats["hits"] = 0
        self._stats["misses"] = 0

    # ============================================================
    # Introspection
    # ============================================================

    def list_rules(self) -> List[str]:
        """Describe every rule, highest priority first."""
        ordered = sorted(enumerate(self._rules), key=lambda item: (-item[1].priority, item[0]))
        lines = []
        for _, rule in ordered:
            line = repr(rule.metadata)
            if rule.metadata.tags:
                line += f" [{', '.join(rule.metadata.tags)}]"
            if not self._is_rule_active(rule.metadata):
                line += " (disabled)"
            lines.append(line)
        return lines

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        return name in self._rule_names

    def __repr__(self) -> str:
        return f"RuleEngine({self.name!r}, {len(self._rules)} rules)"

    def __rshift__(self, other: 'RuleEngine') -> 'SequencedEngine':
        """
        Sequence two engines: engine1 >> engine2.

        Returns a SequencedEngine that applies engine1 until fixpoint,
        then applies engine2 until fixpoint.
        """
        return SequencedEngine([self, other])


class SequencedEngine:
    """
    An engine that applies multiple engines in sequence.

    Each engine is run until its fixpoint before moving to the next.
    Created via the >> operator on RuleEngine.
    """

    def __init__(self, engines: List[RuleEngine]):
        """Initialize with a list of engines to apply in sequence."""
        self._engines = list(engines)

    def simplify(self, expr: Expression, trace: bool = False,
                 groups: Optional[List[str]] = None):
        """Apply all engines in sequence; see RuleEngine.simplify."""
        expr = as_expression(expr)
        if not trace:
            result = expr
            for engine in self._engines:
                result = engine.simplify(result, groups=groups)
            return result
        full_trace = RewriteTrace(expr)
        result = expr
        for engine in self._engines:
            result, phase_trace = engine.simplify(result, trace=True, groups=groups)
            full_trace.extend(phase_trace)
        return result, full_trace

    def __call__(self, expr: Expression, **kwargs):
        return self.simplify(expr, **kwargs)

    def groups(self) -> set:
        all_groups = set()
        for engine in self._engines:
            all_groups.update(engine.groups())
        return all_groups

    def disable_group(self, group: str) -> 'SequencedEngine':
        """Disable a group in every phase."""
        for engine in self._engines:
            engine.disable_group(group)
        return self

    def enable_group(self, group: str) -> 'SequencedEngine':
        for engine in self._engines:
            engine.enable_group(group)
        return self

    def cache_info(self) -> Dict[str, Dict[str, int]]:
        return {engine.name: engine.cache_info() for engine in self._engines}

    def clear_cache(self) -> None:
        for engine in self._engines:
            engine.clear_cache()

    def __rshift__(self, other: Union[RuleEngine, 'SequencedEngine']) -> 'SequencedEngine':
        """Chain another engine: (a >> b) >> c."""
        if isinstance(other, SequencedEngine):
            return SequencedEngine(self._engines + other._engines)
        return SequencedEngine(self._engines + [other])

    def __repr__(self) -> str:
        return f"SequencedEngine({len(self._engines)} phases)"

    def __len__(self) -> int:
        """Number of phases."""
        return len(self._engines)

    def __iter__(self):
        """Iterate over engines."""
        return iter(self._engines)


class Simplifier(SequencedEngine):
    """
    The standard simplifier: pre >> processing >> post.

    Each instance owns its phase engines and their memo caches; use one
    Simplifier per thread.

    Example:
        simplifier = Simplifier(fold_funcs=MATH_PRELUDE)
        simplifier.simplify(sin(1) + x)   # sin(1) folded numerically
    """

    def __init__(self, fold_funcs: Optional[FoldFuncsType] = None,
                 max_steps: Optional[int] = DEFAULT_MAX_STEPS,
                 cache_min_complexity: int = DEFAULT_CACHE_BAND[0],
                 cache_max_complexity: int = DEFAULT_CACHE_BAND[1]):
        """
        Args:
            fold_funcs: Prelude for folding functions of literals
                (default: EXACT_PRELUDE, which folds only exact points)
            max_steps: Ceiling on rule applications per phase call
            cache_min_complexity: Smallest complexity that is memoized
            cache_max_complexity: Largest complexity that is memoized
        """
        self._fold_funcs = EXACT_PRELUDE if fold_funcs is None else fold_funcs
        settings = dict(max_steps=max_steps,
                        cache_min_complexity=cache_min_complexity,
                        cache_max_complexity=cache_max_complexity)
        super().__init__([
            RuleEngine("pre", **settings).load_rules(pre_rules()),
            RuleEngine("processing", **settings).load_rules(processing_rules(self._fold_funcs)),
            RuleEngine("post", **settings).load_rules(post_rules()),
        ])

    @property
    def pre(self) -> RuleEngine:
        return self._engines[0]

    @property
    def processing(self) -> RuleEngine:
        return self._engines[1]

    @property
    def post(self) -> RuleEngine:
        return self._engines[2]

    @property
    def fold_funcs(self) -> FoldFuncsType:
        return self._fold_funcs

    def with_prelude(self, fold_funcs: FoldFuncsType) -> 'Simplifier':
        """
        Set the prelude used to fold functions of literals.

        Returns:
            self for chaining
        """
        self._fold_funcs = fold_funcs
        self.processing.clear().load_rules(processing_rules(fold_funcs))
        return self

    def __repr__(self) -> str:
        return f"Simplifier({', '.join(f'{e.name}: {len(e)} rules' for e in self._engines)})"


def simplify(expr: Expression, trace: bool = False):
    """Simplify with a fresh default Simplifier."""
    return Simplifier().simplify(expr, trace=trace)
