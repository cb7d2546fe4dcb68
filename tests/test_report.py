import io

from rich.console import Console

from fwdmail.report import HEADERS, PlanReporter, build_plan_table
from fwdmail.sync import CreateAction, DeleteAction, SyncRequest, SyncResult, UpdateAction, classify
from tests.fakes import make_alias


def sample_plan():
    return [
        CreateAction(domain="b.com", name="sales", alias=make_alias("sales", ["a@x.com", "b@x.com"])),
        UpdateAction(domain="b.com", name="info", alias_id="i1", recipients=("c@x.com",), enabled=False, labels=()),
        DeleteAction(domain="b.com", name="old", alias_id="o1"),
    ]


def wide_reporter():
    buffer = io.StringIO()
    return PlanReporter(console=Console(file=buffer, width=200)), buffer


def test_plan_table_has_one_row_per_action():
    table = build_plan_table(sample_plan())
    assert [column.header for column in table.columns] == list(HEADERS)
    assert table.row_count == 3


def test_report_lists_every_action():
    reporter, buffer = wide_reporter()
    reporter.report("a.com", "b.com", sample_plan())
    out = buffer.getvalue()

    assert "TROCKENLAUF: Alias-Sync-Plan (a.com -> b.com, Aktionen=3)" in out
    assert "recipients=[a@x.com, b@x.com] enabled=true" in out
    assert "recipients=[c@x.com] enabled=false" in out
    assert "Alias entfernen" in out
    assert out.index("CREATE") < out.index("UPDATE") < out.index("DELETE")


def test_report_empty_plan():
    reporter, buffer = wide_reporter()
    reporter.report("a.com", "b.com", [])
    out = buffer.getvalue()
    assert "Aktionen=0" in out
    assert "Keine Änderungen nötig" in out
    assert "ACTION" not in out


def test_reporter_writes_to_given_stream():
    stream = io.StringIO()
    PlanReporter(stream=stream).report("a.com", "b.com", [])
    assert stream.getvalue().startswith("TROCKENLAUF: Alias-Sync-Plan (a.com -> b.com, Aktionen=0)")


def test_summary_line(capsys):
    request = SyncRequest.create("a.com", "b.com", "replace")
    result = SyncResult(request=request, classification=classify({}, {}), plan=[], applied=4)
    PlanReporter().summary(result)
    assert capsys.readouterr().out.strip() == "Alias-Sync abgeschlossen: a.com -> b.com (Modus=replace, Aktionen=4)"
