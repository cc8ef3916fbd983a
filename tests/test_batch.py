import logging

from conftest import NoGraphBuilder, ScriptedSynthesizer, contents, hold, make_chart, tap

from patternfill.models import RegionRequest
from patternfill.services.batch import PatternBatch
from patternfill.services.collaborators import PatternEngine


def _region(start, end, **kwargs):
    kwargs.setdefault("seed", 5)
    return RegionRequest(start_row=start, end_row=end, **kwargs)


def test_batch_replaces_region_contents_and_records_both_sides(registry, engine):
    chart = make_chart(tap(0, 0), tap(8, 1), hold(4, 2, 8), tap(24, 3))
    batch = PatternBatch(chart, [_region(8, 12)], registry=registry, engine=engine)

    report = batch.run()

    assert report.completed
    assert report.unhandled_error is None
    assert contents(report.deleted) == [(4, 2, "hold", 8), (8, 1, "tap", 0)]
    assert [event.row for event in report.added] == [8, 9, 10, 11]
    assert [event.row for event in chart.events] == [0, 8, 9, 10, 11, 24]


def test_undo_restores_the_chart_and_redo_reapplies_without_regenerating(registry, engine, builder, synthesizer):
    original = [tap(0, 0), tap(8, 1), tap(24, 3)]
    chart = make_chart(*original)
    batch = PatternBatch(chart, [_region(8, 16)], registry=registry, engine=engine)
    batch.run()
    generated = contents(chart.events)

    batch.undo()
    assert contents(chart.events) == contents(original)

    report = batch.run()
    assert contents(chart.events) == generated
    assert len(builder.calls) == 1
    assert len(synthesizer.requests) == 1
    assert report.outcomes == []


def test_added_events_are_retimed_on_commit(registry, engine):
    chart = make_chart()

    PatternBatch(chart, [_region(0, 4)], registry=registry, engine=engine).run()

    assert [event.time for event in chart.events] == [chart.timer.time_at_row(row) for row in range(4)]


def test_unknown_chart_type_aborts_before_erasing(registry, engine, caplog):
    chart = make_chart(tap(8, 0), chart_type="techno-single")
    batch = PatternBatch(chart, [_region(0, 16)], registry=registry, engine=engine)

    with caplog.at_level(logging.INFO):
        report = batch.run()

    assert not report.completed
    assert report.aborted_reason == "Failed to generate pattern. No techno-single StepGraph is loaded."
    assert report.deleted == []
    assert contents(chart.events) == [(8, 0, "tap", 0)]
    assert any(getattr(record, "event", "") == "pattern_batch_aborted" for record in caplog.records)


def test_unknown_expressed_config_and_pattern_config_abort(registry, engine):
    chart = make_chart(expressed_chart_config="Nonexistent")
    report = PatternBatch(chart, [_region(0, 16), _region(32, 48)], registry=registry, engine=engine).run()
    assert report.aborted_reason == "Failed to generate patterns. No Nonexistent Expressed Chart Config defined."

    chart = make_chart()
    report = PatternBatch(chart, [_region(0, 16, pattern_config="Waltz")], registry=registry, engine=engine).run()
    assert report.aborted_reason == "Failed to generate pattern. No Waltz Pattern Config defined."


def test_unconfigured_engine_aborts(registry):
    report = PatternBatch(make_chart(), [_region(0, 16)], registry=registry, engine=PatternEngine()).run()

    assert report.aborted_reason == "Failed to generate pattern. No graph builder and note synthesizer are configured."


def test_missing_graph_skips_every_region_but_keeps_erasures(registry, synthesizer, caplog):
    builder = NoGraphBuilder()
    chart = make_chart(tap(4, 0), tap(20, 1), tap(40, 2))
    batch = PatternBatch(
        chart,
        [_region(0, 8), _region(16, 24)],
        registry=registry,
        engine=PatternEngine(graph_builder=builder, synthesizer=synthesizer),
    )

    with caplog.at_level(logging.INFO):
        report = batch.run()

    assert report.completed
    assert [outcome.status for outcome in report.outcomes] == ["skipped", "skipped"]
    assert report.outcomes[0].reason == "Could not create Expressed Chart."
    assert builder.calls == 2
    assert synthesizer.requests == []
    assert contents(chart.events) == [(40, 2, "tap", 0)]
    failures = [record for record in caplog.records if getattr(record, "event", "") == "pattern_region_failed"]
    assert len(failures) == 2
    assert failures[0].levelno == logging.ERROR


def test_failed_synthesis_skips_only_that_region(registry, builder):
    synthesizer = ScriptedSynthesizer(fail_rows={0})
    chart = make_chart()
    engine = PatternEngine(graph_builder=builder, synthesizer=synthesizer)

    report = PatternBatch(chart, [_region(0, 8), _region(16, 24)], registry=registry, engine=engine).run()

    first, second = report.outcomes
    assert first.status == "skipped"
    assert first.reason == "Could not create Performed Chart."
    assert second.status == "generated"
    assert [event.row for event in chart.events] == list(range(16, 24))


def test_unexpected_error_keeps_partial_additions(registry, builder, caplog):
    synthesizer = ScriptedSynthesizer(raise_rows={16})
    chart = make_chart(tap(20, 2))
    engine = PatternEngine(graph_builder=builder, synthesizer=synthesizer)

    with caplog.at_level(logging.INFO):
        report = PatternBatch(chart, [_region(0, 8), _region(16, 24)], registry=registry, engine=engine).run()

    assert report.completed
    assert report.unhandled_error.startswith("Failed to generate patterns. RuntimeError")
    assert len(report.outcomes) == 1
    assert [event.row for event in chart.events] == list(range(0, 8))
    assert contents(report.deleted) == [(20, 2, "tap", 0)]
    assert any(getattr(record, "event", "") == "pattern_batch_unhandled_error" for record in caplog.records)


def test_regions_are_sorted_and_described(registry, engine):
    many = PatternBatch(make_chart(), [_region(32, 48), _region(0, 16)], registry=registry, engine=engine)
    one = PatternBatch(make_chart(), [_region(8, 16, pattern_config="Eighths")], registry=registry, engine=engine)

    assert [region.start_row for region in many.regions] == [0, 32]
    assert many.describe() == "Autogenerate 2 Patterns."
    assert one.describe() == "Autogenerate Eighths Pattern at row 8."


def test_generated_region_log_reports_seed_and_count(registry, engine, caplog):
    batch = PatternBatch(make_chart(), [_region(0, 8)], registry=registry, engine=engine)

    with caplog.at_level(logging.INFO):
        batch.run()

    generated = next(record for record in caplog.records if getattr(record, "event", "") == "pattern_region_generated")
    assert generated.seed == 5
    assert generated.added_count == 8


def test_duplicated_events_in_a_region_are_all_replaced(registry, engine):
    chart = make_chart(tap(8, 0), tap(8, 0), tap(24, 3))

    report = PatternBatch(chart, [_region(8, 12)], registry=registry, engine=engine).run()

    assert contents(report.deleted) == [(8, 0, "tap", 0), (8, 0, "tap", 0)]
    assert contents(chart.events) == [(8, 0, "tap", 0), (9, 1, "tap", 0), (10, 2, "tap", 0), (11, 3, "tap", 0), (24, 3, "tap", 0)]
