# hybrid_ai/infrastructure/adapters/ai/offline_responses.py

"""Static answers used when every backend is unavailable"""

from typing import Dict

from .models import AIRequest, AIResponse, BackendIdentity, RequestKind

OFFLINE_CONFIDENCE = 30.0

OFFLINE_FOOTER = "This is an offline response. For real-time analysis, ensure your AI services are connected."

OFFLINE_TEXTS: Dict[RequestKind, str] = {
    RequestKind.DRAFT_ANALYSIS: """Based on standard fantasy football strategy for {scoring} scoring:

Draft Strategy Recommendations:
- Focus on RB/WR early rounds for reliable scoring
- Target high-volume players in PPR leagues
- Consider positional scarcity for TE and QB timing
- Build roster depth in middle rounds

Key Considerations:
- Injury history and age for older players
- Offensive line quality for RBs
- Target share and red zone usage for WRs
- Quarterback stability for skill position players""",

    RequestKind.TRADE_EVALUATION: """Trade Evaluation (Offline Mode):

Weigh any trade against these general factors:
- Positional need on both rosters after the trade
- Remaining schedule and playoff matchups
- Injury risk and age of the players involved
- Whether you are consolidating talent or adding depth""",

    RequestKind.LINEUP_OPTIMIZATION: """Lineup Optimization (Offline Mode):

Before lineups lock:
- Start your studs regardless of matchup
- Check injury reports and inactive lists
- Prefer players in games with high projected totals
- Use the flex on the player with the higher floor""",

    RequestKind.PLAYER_ANALYSIS: """Player Analysis (Offline Mode):

Without real-time data, consider these general fantasy factors:
- Past season performance and trends
- Team offensive system changes
- Health and injury concerns
- Target/carry competition
- Schedule strength analysis""",

    RequestKind.GENERAL_ADVICE: """Fantasy Football General Advice (Offline Mode):

Universal Fantasy Principles:
- Start your studs - don't get cute
- Check weather for outdoor games
- Monitor injury reports before lineups lock
- Consider matchup strength and game script
- Stream defenses against poor offenses""",
}

STRATEGY_POINTS = [
    "This is an offline response with limited analysis",
    "Restore AI connection for personalized recommendations",
    "Use standard fantasy football principles as guidance",
]


def build_offline_response(
        request: AIRequest,
        confidence: float = OFFLINE_CONFIDENCE,
        latency_ms: float = 0.0
) -> AIResponse:
    """
    Synthesize the degraded-mode answer for a request.

    Args:
        request: Original request (requestId is echoed)
        confidence: Reported confidence
        latency_ms: Time spent before giving up on the chain

    Returns:
        AIResponse tagged with the offline identity
    """
    template = OFFLINE_TEXTS.get(request.kind, OFFLINE_TEXTS[RequestKind.GENERAL_ADVICE])
    scoring = request.context_payload.get('scoringSystem') or 'standard'
    text = template.replace('{scoring}', str(scoring))

    return AIResponse(
        request_id=request.request_id,
        backend_used=BackendIdentity.OFFLINE,
        text=f"{text}\n\n{OFFLINE_FOOTER}",
        confidence=confidence,
        latency_ms=latency_ms,
        analysis_payload={
            'kind': request.kind.value,
            'strategyPoints': list(STRATEGY_POINTS)
        }
    )
