from pickhub.candidates import Candidate
from pickhub.exposure import ExposureLedger


def _record_all(candidates: list[Candidate]) -> ExposureLedger:
    ledger = ExposureLedger()
    for candidate in candidates:
        ledger = ledger.record(candidate)
    return ledger


def _candidate(
    game_id: str = "G1",
    market: str = "moneyline",
    selection: str = "home",
    *,
    teams: tuple[str, ...] = ("BUF", "KC"),
    price: int | None = -150,
    public: float = 50.0,
) -> Candidate:
    return Candidate(
        game_id=game_id,
        market=market,
        selection=selection,
        base_score=60.0,
        price=price,
        teams=teams,
        public_pct=public,
    )


def test_empty_ledger_has_no_penalty() -> None:
    penalty = ExposureLedger().penalty(_candidate(price=-400, public=90.0))

    assert penalty.total == 0.0
    assert penalty.parts == ()


def test_exact_repeat_after_two_prior_picks() -> None:
    pick = _candidate()
    ledger = ExposureLedger().record(pick)

    assert ledger.penalty(pick).total == 0.0

    ledger = ledger.record(pick)
    penalty = ledger.penalty(pick)

    assert ledger.exact_pick_count["G1|moneyline|home"] == 2
    assert ("exact_repeat", 12.0) in penalty.parts
    assert ("same_game", 3.0) in penalty.parts
    assert penalty.total == 15.0


def test_same_game_penalty_applies_to_other_markets() -> None:
    ledger = _record_all(
        [_candidate(market="spread"), _candidate(market="total", selection="over")]
    )

    penalty = ledger.penalty(_candidate())

    assert penalty.parts == (("same_game", 3.0),)


def test_team_exposure_counts_both_teams() -> None:
    picks = [
        _candidate(game_id=f"G{index}", teams=("KC", f"T{index}"), price=120)
        for index in range(4)
    ]
    ledger = _record_all(picks)

    assert ledger.team_count["KC"] == 4
    assert ledger.team_count["T0"] == 1
    assert ledger.penalty(_candidate(game_id="G9", teams=("DEN", "KC"))).total == 5.0
    assert ledger.penalty(_candidate(game_id="G9", teams=("DEN", "LV"))).total == 0.0


def test_moneyline_chalk_penalty_only_hits_chalk() -> None:
    picks = [
        _candidate(game_id=f"G{index}", teams=(f"A{index}", f"H{index}"), price=-250)
        for index in range(3)
    ]
    ledger = _record_all(picks)

    assert ledger.ml_chalk_count == 3
    chalk = ledger.penalty(_candidate(game_id="G9", teams=("X", "Y"), price=-210))
    not_chalk = ledger.penalty(_candidate(game_id="G9", teams=("X", "Y"), price=-200))
    spread = ledger.penalty(
        _candidate(game_id="G9", market="spread", teams=("X", "Y"), price=-250)
    )

    assert chalk.parts == (("moneyline_chalk", 6.0),)
    assert not_chalk.total == 0.0
    assert spread.total == 0.0


def test_public_aligned_penalty_after_six_aligned_picks() -> None:
    picks = [
        _candidate(game_id=f"G{index}", teams=(f"A{index}", f"H{index}"), public=65.0)
        for index in range(6)
    ]
    ledger = _record_all(picks)

    assert ledger.public_aligned_count == 6
    aligned = ledger.penalty(_candidate(game_id="G9", teams=("X", "Y"), public=72.0))
    contrarian = ledger.penalty(_candidate(game_id="G9", teams=("X", "Y"), public=64.9))

    assert aligned.parts == (("public_aligned", 6.0),)
    assert contrarian.total == 0.0


def test_record_returns_new_ledger() -> None:
    empty = ExposureLedger()
    updated = empty.record(_candidate())

    assert empty.total_picks == 0
    assert empty.exact_pick_count == {}
    assert updated.total_picks == 1
    assert updated.to_dict() == {
        "exactPickCount": {"G1|moneyline|home": 1},
        "gamePickCount": {"G1": 1},
        "teamCount": {"BUF": 1, "KC": 1},
        "mlChalkCount": 0,
        "publicAlignedCount": 0,
        "totalPicks": 1,
    }
