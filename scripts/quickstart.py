import logging

from portfolio_mcts.analytics.report import summarize_result
from portfolio_mcts.config import AssetAssumption, MarketData, SearchConfig
from portfolio_mcts.policy.portfolio import optimize_portfolio


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # 1) Market assumptions (swap in portfolio_mcts.data.market.load_market_data for live data)
    market = MarketData(
        assets={
            "VTI": AssetAssumption(expected_return=0.08, volatility=0.20, recession_factor=0.5),
            "TLT": AssetAssumption(expected_return=0.05, volatility=0.10, recession_factor=1.2),
            "GLD": AssetAssumption(expected_return=0.04, volatility=0.15, recession_factor=1.1),
        },
        risk_free_rate=0.02,
        scenarios=({"recession": True}, {"recession": False}),
    )

    # 2) Portfolio and search budget
    portfolio = {"VTI": 0.6, "TLT": 0.4}
    cfg = SearchConfig(max_iterations=2_000, seed=42)

    # 3) Search
    result = optimize_portfolio(portfolio, market, risk_tolerance=0.5, investment_horizon="long", search_config=cfg)

    # 4) Simple summary
    summary = summarize_result(result)
    lo, hi = result.confidence_interval
    print(f"=== MCTS Summary ({result.iterations} iterations) ===")
    print(f"Expected reward: {result.expected_return:.4f}")
    print(f"Risk (CV): {result.risk_assessment:.3f}  confidence: {summary.confidence_score:.2f}")
    print(f"90% interval: [{lo:.4f}, {hi:.4f}]")
    print("Optimal path:")
    for action, state in zip(result.optimal_actions, result.optimal_path[1:]):
        alloc = ", ".join(f"{k}={v:.3f}" for k, v in sorted(state.assets.items()))
        print(f"  {action} -> {alloc}")
    for w in summary.risk_warnings:
        print(f"WARNING: {w}")
    for s in summary.suggestions:
        print(f"Suggestion: {s}")


if __name__ == "__main__":
    main()
