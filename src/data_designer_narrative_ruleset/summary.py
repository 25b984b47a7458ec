# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from data_designer_narrative_ruleset.defaults import humanize_move
from data_designer_narrative_ruleset.profile import CausalGrammar, EngineProfile, StoryEngine

ENGINE_DESCRIPTIONS: dict[StoryEngine, str] = {
    StoryEngine.PRESSURE_COOKER: "Characters trapped in escalating constraints with diminishing options.",
    StoryEngine.TWO_HANDER: "Two central characters in an evolving power dynamic.",
    StoryEngine.SLOW_BURN_INVESTIGATION: "Gradual revelation through methodical inquiry and observation.",
    StoryEngine.SOCIAL_REALISM: "Grounded in everyday reality, institutional friction, economic pressure.",
    StoryEngine.MORAL_TRAP: "Protagonist faces an impossible choice with legitimate arguments on all sides.",
    StoryEngine.CHARACTER_SPIRAL: "Internal deterioration or transformation driven by a core flaw.",
    StoryEngine.RASHOMON: "Multiple perspectives revealing contradictory truths.",
    StoryEngine.ANTI_PLOT: "Meaning emerges from pattern rather than arc.",
}

GRAMMAR_DESCRIPTIONS: dict[CausalGrammar, str] = {
    CausalGrammar.ACCUMULATION: "Small pressures compound until a threshold breaks.",
    CausalGrammar.EROSION: "Something valued is gradually worn away.",
    CausalGrammar.EXCHANGE: "Every gain requires a specific loss.",
    CausalGrammar.MIRROR: "Characters in parallel situations make different choices.",
    CausalGrammar.CONSTRAINT: "External systems limit what characters can do.",
    CausalGrammar.MISALIGNMENT: "Characters want compatible things but can't coordinate.",
    CausalGrammar.CONTAGION: "One person's choice cascades through a network.",
    CausalGrammar.REVELATION_WITHOUT_FACTS: "Understanding shifts without new information.",
}


def generate_rules_summary(profile: EngineProfile) -> str:
    """Render ``profile`` as a short human-readable summary."""
    b = profile.budgets
    pacing = profile.pacing_profile
    stakes = profile.stakes_ladder
    lines = [
        f"Lane: {profile.lane.value}",
        f"Engine: {profile.story_engine.value} / {profile.causal_grammar.value} / {profile.conflict_mode.value}",
        f"Drama: {b.drama_budget}, Twists: {b.twist_cap}, Reveals: {b.big_reveal_cap}",
        f"Chars: max {b.core_character_cap}, Threads: max {b.plot_thread_cap}",
        f"Quiet beats: min {pacing.quiet_beats_min}, Subtext: min {pacing.subtext_scenes_min}",
        f"Stakes: {'/'.join(stakes.early_allowed)} early; no global before {round(stakes.no_global_before_pct * 100)}%",
    ]
    if profile.forbidden_moves:
        lines.append(f"Forbidden: {', '.join(humanize_move(m) for m in profile.forbidden_moves)}")
    if profile.comps:
        lines.append(f"Comps: {', '.join(c.title for c in profile.comps)}")
    return "\n".join(lines)


def build_ruleset_prompt_block(profile: EngineProfile) -> str:
    """Render the constraint block handed to the drafting prompt."""
    b = profile.budgets
    pacing = profile.pacing_profile
    late_pct = round(profile.stakes_ladder.no_global_before_pct * 100)
    lines = [
        "## NARRATIVE RULESET (MANDATORY)",
        "",
        f"### Story Engine: {profile.story_engine.value}",
        ENGINE_DESCRIPTIONS[profile.story_engine],
        "",
        f"### Causal Grammar: {profile.causal_grammar.value}",
        GRAMMAR_DESCRIPTIONS[profile.causal_grammar],
        "",
        f"### Conflict Mode: {profile.conflict_mode.value}",
        "",
        "### Budgets",
        f"- Maximum {b.drama_budget} major escalations.",
        f"- Maximum {b.twist_cap} twist(s) and {b.big_reveal_cap} big reveal(s).",
        f"- Maximum {b.core_character_cap} core characters and {b.plot_thread_cap} plot threads.",
        f"- Stakes stay {'/'.join(profile.stakes_ladder.early_allowed)} until the final {late_pct}%.",
        "",
        "### Required Elements",
        f"- At least {pacing.subtext_scenes_min} subtext scenes.",
        f"- At least {pacing.quiet_beats_min} quiet beats with tension present but unexpressed.",
        f"- At least {pacing.meaning_shifts_min_per_act} meaning shift(s) per act.",
        "- Opposition must be legitimate: values collision, systemic constraint or reasonable disagreement.",
    ]
    if profile.dialogue_rules.no_speeches:
        lines.append(f"- No speeches; monologues at most {profile.dialogue_rules.monologue_max_lines} lines.")
    if profile.forbidden_moves:
        lines += ["", "### Forbidden Moves"]
        lines += [f"- Do NOT use: {humanize_move(m)}" for m in profile.forbidden_moves]
    return "\n".join(lines)
