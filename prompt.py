"""Centralized prompt definitions for LLM interactions."""

from typing import Dict, List, Optional, Sequence

from services.models import StrategyLogic, UserSettings

# Exact completion signal the acquisition model must send when it has enough charts
ANALYSIS_READY_SENTINEL = "[ANALYSIS_READY]"

GUIDED_START_MESSAGE = "Start."

READY_MESSAGE = "All charts have been provided. The 'Analyze' button is now enabled."

CACHED_DATA_ONLY_MESSAGE = "Analyze the provided cached historical data based on the system instructions."


# Built-in strategy catalogue
STRATEGY_LOGIC: Dict[str, StrategyLogic] = {
    "adx_dmi_trend": StrategyLogic(
        name="Core ADX/DMI Trend Analysis",
        description="Trend-following entries confirmed by ADX strength and DMI direction.",
        prompt="""- Trend exists only when ADX(14) > 25 on the higher timeframe.
- Longs require +DI above -DI; shorts require -DI above +DI.
- Enter on the lower timeframe pullback to the 20 EMA in the trend direction.
- Stop loss beyond the pullback swing; first target at 2R.""",
        requirements=["ADX(14)", "+DI / -DI", "20 EMA"],
    ),
    "smc_order_blocks": StrategyLogic(
        name="SMC Order Blocks",
        description="Smart-money order block retests after a break of structure.",
        prompt="""- Identify a break of structure on the higher timeframe.
- The order block is the last opposing candle before the impulsive move.
- Enter with a limit order on the first return into the order block.
- Stop loss beyond the order block; targets at the opposing liquidity pools.""",
        requirements=["Clean price action (no indicators required)"],
    ),
}


def guided_acquisition_prompt(strategy: StrategyLogic) -> str:
    return f"""You are an AI data acquisition specialist for a trading analysis tool. Your sole purpose is to guide a user, step-by-step, to provide the necessary chart screenshots for a specific trading strategy.

**CONTEXT:**
- The user has selected the following strategy:
--- STRATEGY NAME: {strategy.name} ---
--- CORE STRATEGY LOGIC (Your ONLY source of truth): ---
{strategy.prompt}
--- END STRATEGY ---

**YOUR PROTOCOL (Follow PRECISELY and CONCISELY):**

1.  **Your Goal:** Request charts sequentially until you have enough multi-timeframe context to satisfy the strategy's requirements. Typically, this means a high, medium, and low timeframe chart.
2.  **Be Specific:** Specify the EXACT timeframe (e.g., "Daily Chart", "15-Minute Chart") and state ANY required indicators from the CORE STRATEGY LOGIC.
3.  **Analyze & Request:** When you receive a chart, briefly acknowledge it and immediately make your next request.
4.  **Completion Signal:** When you have gathered all necessary charts, your FINAL response MUST be the exact string: `{ANALYSIS_READY_SENTINEL}`. Do not say anything else.
5.  **Validation (CRITICAL):** If the user provides an incorrect chart (wrong timeframe, missing indicators), politely reject it and re-issue your previous request with more clarity.
6.  **Keep it Brief:** Your responses should be a single, direct request."""


def _strategy_details(strategy_keys: Sequence[str], strategies: Dict[str, StrategyLogic]) -> str:
    blocks = []
    for key in strategy_keys:
        logic = strategies.get(key)
        if logic is None:
            blocks.append(f"// Invalid Strategy Key: {key}")
            continue
        blocks.append(f"--- STRATEGY: {logic.name} ---\n{logic.prompt}\n--- END STRATEGY ---")
    return "\n\n".join(blocks)


def _dataset_summary(dataset_counts: Dict[str, int]) -> str:
    if not dataset_counts:
        return ""
    lines: List[str] = [f"- {key}: {count} candles available." for key, count in dataset_counts.items()]
    return (
        "You have been provided with cached historical data for broader context. "
        "Use this data to establish a macro view and identify major support/resistance levels.\n"
        "Available Datasets:\n" + "\n".join(lines)
    )


def _price_anchor(current_price: Optional[float]) -> str:
    if current_price is not None:
        return (
            f"THE CURRENT PRICE IS `{current_price:.4f}`. This is your non-negotiable anchor point for all "
            "analysis. All generated trades MUST be relevant and in the immediate vicinity of this price."
        )
    return (
        "Your first step is to identify the 'current price' from the user's screenshots (the closing price "
        "of the most recent candle). All subsequent analysis MUST be anchored to this price."
    )


def analysis_system_instruction(
    strategy_keys: Sequence[str],
    strategies: Dict[str, StrategyLogic],
    settings: UserSettings,
    image_count: int,
    dataset_counts: Dict[str, int],
    current_price: Optional[float],
) -> str:
    """System instruction for the final, single-shot analysis call."""
    if image_count > 0:
        images = ("The user has provided screenshots for the most RECENT price action. These are your PRIMARY "
                  "source for current market conditions. The images are indexed starting from 0 (highest timeframe).")
    else:
        images = "No screenshots were provided. Rely solely on the cached historical data."

    return f"""You are The Oracle, a specialist AI that transforms user-defined trading strategies into concrete, actionable trade setups. Your sole function is to execute the user's logic with extreme precision.

**PRIMARY DIRECTIVE: USER'S LOGIC IS LAW**
You are FORBIDDEN from using generic trading knowledge. The user's strategy is your ONLY source of truth.

**== INPUT DATA ==**
1.  **USER STRATEGY LOGIC:**
{_strategy_details(strategy_keys, strategies)}
2.  **USER PREFERENCES:**
    - Risk Appetite: {settings.risk_appetite}
    - Minimum R:R: {settings.min_risk_reward_ratio}:1
    - Stop Loss Logic: {settings.stop_loss_strategy}
3.  **MARKET DATA:**
    - **Current Price Anchor:** {_price_anchor(current_price)}
    - **Cached Historical Data:** {_dataset_summary(dataset_counts)}
    - **Recent Price Action Screenshots:** {images}

**== EXECUTION PROTOCOL (NON-NEGOTIABLE) ==**

1.  **MANDATORY PRE-FLIGHT INDICATOR CHECK:** Identify ALL indicators the strategy requires and scan every screenshot for them. If ANY are missing, ABORT: return "Top Longs" and "Top Shorts" as empty arrays and explain in "strategySuggestion.reasoning" exactly which indicators are missing.
2.  **APPLY LOGIC & JUSTIFY:** For EACH trade, write an 'explanation' that quotes or paraphrases a specific rule from the USER STRATEGY LOGIC and connects it to evidence on the chart.
3.  **PROXIMITY GATEKEEPER:** Every trade's entry MUST be near the current price anchor.

**== OUTPUT FORMAT (NON-NEGOTIABLE) ==**
Your response MUST be a single, valid JSON object:
{{
  "Top Longs": [/* Trade objects or empty */],
  "Top Shorts": [/* Trade objects or empty */],
  "strategySuggestion": {{
    "suggestedStrategies": [/* strategy keys or empty */],
    "suggestedSettings": {{}},
    "reasoning": "A string explanation. THIS IS A MANDATORY FIELD."
  }}
}}

Each Trade object has: "type", "direction" ("Long" or "Short"), "symbol", "entry", "entryType" ("Limit Order" or "Confirmation Entry"), "entryExplanation", "stopLoss", "takeProfit1", "takeProfit2", "heat" (integer 1-5) and "explanation".
"""
