import itertools

from flow_engine.market.mock_feed import generate_mock_candles, iter_mock_ticks

T0 = 1_699_999_200


def test_mock_candles_are_seeded_and_contiguous():
    a = generate_mock_candles(50, 60, end_time=T0 + 3000, seed=11)
    b = generate_mock_candles(50, 60, end_time=T0 + 3000, seed=11)
    assert a == b
    assert [c.time for c in a] == [T0 + i * 60 for i in range(50)]
    for prev, cur in zip(a, a[1:]):
        assert cur.open == prev.close
    for c in a:
        assert c.low <= min(c.open, c.close) and c.high >= max(c.open, c.close)
        assert c.volume >= 0


def test_mock_ticks_advance_in_time():
    ticks = list(itertools.islice(iter_mock_ticks(T0, ticks_per_second=4, seed=1), 8))
    assert [t.ts for t in ticks] == [T0 + i * 0.25 for i in range(8)]
    assert all(t.qty >= 0 for t in ticks)
