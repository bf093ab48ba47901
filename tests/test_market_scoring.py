import pytest

from pickhub.factbook import (
    BettingContext,
    DefenseStats,
    GameSnapshot,
    LineMove,
    OffenseStats,
    PriceMove,
    PublicSplit,
    TeamSnapshot,
)
from pickhub.market_scoring import (
    MONEYLINE_WEIGHTS,
    SPREAD_WEIGHTS,
    TOTAL_WEIGHTS,
    compute_moneyline_score,
    compute_spread_score,
    compute_total_score,
    expected_total,
    normalize,
    score_game,
    stat_margin,
)


def _team(
    abbr: str,
    *,
    ppg: float = 0.0,
    allowed: float = 0.0,
    turnovers: float = 0.0,
    passing: float = 0.0,
    sacks: float = 0.0,
    interceptions: float = 0.0,
    coach: float = 0.0,
    win_pct: float = 0.0,
) -> TeamSnapshot:
    return TeamSnapshot(
        abbreviation=abbr,
        win_percentage=win_pct,
        offense=OffenseStats(points_per_game=ppg, turnovers=turnovers, passing_yards=passing),
        defense=DefenseStats(points_allowed=allowed, sacks=sacks, interceptions=interceptions),
        coach_experience=coach,
    )


def _example(betting: BettingContext | None = None) -> GameSnapshot:
    return GameSnapshot(
        game_id="G1",
        away=_team("BUF", ppg=24.5, allowed=19.7),
        home=_team("KC", ppg=26.8, allowed=21.2),
        betting=betting or BettingContext(),
    )


def test_weights_sum_to_100() -> None:
    assert sum(SPREAD_WEIGHTS.values()) == 100.0
    assert sum(TOTAL_WEIGHTS.values()) == 100.0
    assert sum(MONEYLINE_WEIGHTS.values()) == 100.0


def test_spread_end_to_end_example_picks_home() -> None:
    snapshot = _example()

    assert stat_margin(snapshot) == pytest.approx(-3.8)
    score = compute_spread_score(snapshot)

    assert score.market == "spread"
    assert score.selection == "home"
    assert score.edge == pytest.approx(3.8)
    assert score.score == pytest.approx(15.2)
    assert score.reasons[0] == "Stat margin (PPG vs opp PA): HOME +3.80 pts"
    assert [item.name for item in score.components] == [
        "margin",
        "discipline",
        "disruption",
        "coaching",
        "movement",
        "public_skew",
    ]


def test_spread_negative_deltas_do_not_add_score() -> None:
    snapshot = GameSnapshot(
        game_id="G1",
        away=_team("BUF", ppg=24.5, allowed=19.7, turnovers=0.5, sacks=4.0, coach=12.0),
        home=_team("KC", ppg=26.8, allowed=21.2, turnovers=2.5, sacks=1.0, coach=2.0),
    )

    score = compute_spread_score(snapshot)

    assert score.selection == "home"
    assert score.score == pytest.approx(15.2)
    assert "Turnovers delta (opp - chosen): -2.00" in score.reasons


def test_spread_score_saturates_at_100() -> None:
    snapshot = GameSnapshot(
        game_id="G1",
        away=_team("BUF", ppg=60.0, allowed=50.0, sacks=10.0, coach=30.0),
        home=_team("KC", ppg=10.0, allowed=10.0, turnovers=20.0),
        betting=BettingContext(
            spread_split=PublicSplit(first=100.0, second=0.0),
            spread_move=LineMove(opening=-3.0, current=2.0, movement=5.0, direction="away"),
        ),
    )

    score = compute_spread_score(snapshot)

    assert score.selection == "away"
    assert score.score == 100.0


def test_empty_snapshot_scores_zero_everywhere() -> None:
    snapshot = GameSnapshot(game_id="G0", away=_team("AWAY"), home=_team("HOME"))

    spread, total, moneyline = score_game(snapshot)

    assert (spread.selection, spread.score) == ("away", 0.0)
    assert (total.selection, total.score) == ("over", 0.0)
    assert (moneyline.selection, moneyline.score) == ("away", 0.0)


def test_scores_stay_in_bounds_for_extreme_inputs() -> None:
    snapshot = GameSnapshot(
        game_id="GX",
        away=_team("A", ppg=99.0, allowed=-40.0, turnovers=-9.0, passing=9000.0, sacks=90.0),
        home=_team("B", ppg=-5.0, allowed=150.0, turnovers=80.0, passing=9000.0, win_pct=4.0),
        betting=BettingContext(
            total_line=-10.0,
            spread_split=PublicSplit(first=500.0, second=-400.0),
            total_split=PublicSplit(first=500.0, second=-400.0),
            moneyline_split=PublicSplit(first=500.0, second=-400.0),
            total_move=LineMove(movement=40.0, direction="over"),
            moneyline_away_move=PriceMove(opening=-900.0, current=900.0),
        ),
    )

    for score in score_game(snapshot):
        assert 0.0 <= score.score <= 100.0


def test_total_over_with_confirming_movement() -> None:
    snapshot = _example(
        BettingContext(
            total_line=44.5,
            total_split=PublicSplit(first=70.0, second=30.0),
            total_move=LineMove(opening=44.5, current=46.0, movement=1.5, direction="over"),
        )
    )

    assert expected_total(snapshot) == pytest.approx(47.66)
    score = compute_total_score(snapshot)

    assert score.selection == "over"
    assert score.edge == pytest.approx(3.16)
    assert score.score == pytest.approx(38.64)


def test_total_movement_against_direction_is_ignored() -> None:
    snapshot = _example(
        BettingContext(
            total_line=44.5,
            total_move=LineMove(opening=46.0, current=44.5, movement=-1.5, direction="under"),
        )
    )

    score = compute_total_score(snapshot)
    movement = next(item for item in score.components if item.name == "movement")

    assert score.selection == "over"
    assert movement.contribution == 0.0


def test_total_under_weights_disruption_fully_and_pace_partially() -> None:
    snapshot = GameSnapshot(
        game_id="G1",
        away=_team("BUF", ppg=24.5, allowed=19.7, passing=300.0, sacks=4.0),
        home=_team("KC", ppg=26.8, allowed=21.2, passing=300.0, interceptions=4.0),
        betting=BettingContext(total_line=60.0),
    )

    score = compute_total_score(snapshot)

    assert score.selection == "under"
    assert score.score == pytest.approx(53.0)


def test_moneyline_combines_margin_form_and_steam() -> None:
    snapshot = GameSnapshot(
        game_id="G1",
        away=_team("BUF", ppg=24.5, allowed=19.7, win_pct=0.75),
        home=_team("KC", ppg=26.8, allowed=21.2, win_pct=0.25),
        betting=BettingContext(
            moneyline_home_move=PriceMove(opening=-150.0, current=-180.0, movement=-30.0),
        ),
    )

    score = compute_moneyline_score(snapshot)

    assert score.selection == "home"
    assert score.edge == pytest.approx(3.3)
    assert score.score == pytest.approx(45.8)


def test_normalize_caps_and_uses_magnitude() -> None:
    assert normalize(-5.0, 10.0) == pytest.approx(0.5)
    assert normalize(20.0, 10.0) == 1.0
    assert normalize(3.0, 0.0) == 0.0
