import json

from conductor_provisioner.core.provisioner import PassReport
from conductor_provisioner.core.reconciler import ReconciliationResult
from conductor_provisioner.core.resources import ResourceKind
from conductor_provisioner.utils.reporting import print_rows


def test_pass_rows_for_plan_and_apply():
    plan = PassReport(
        ResourceKind.PROMPT,
        "ok",
        result=ReconciliationResult(ResourceKind.PROMPT, plan_only=True, existing=["A"], missing=["B", "C"]),
    )
    applied = PassReport(
        ResourceKind.PROMPT,
        "ok",
        result=ReconciliationResult(ResourceKind.PROMPT, plan_only=False, missing=["B"], created_count=1),
    )

    assert plan.to_row()["would_create"] == 2
    assert "created" not in plan.to_row()
    assert applied.to_row()["created"] == 1
    assert applied.to_row()["names"] == "B"


def test_skipped_pass_row_has_a_note():
    row = PassReport(ResourceKind.FORM, "skipped", message="source not found").to_row()
    assert row == {"kind": "form", "status": "skipped", "ui": "", "note": "source not found"}


def test_table_keeps_populated_columns(capsys):
    print_rows(
        [
            {"kind": "taskdef", "status": "ok", "existing": 1, "created": 1, "names": "b"},
            {"kind": "form", "status": "skipped", "note": "source not found"},
        ]
    )
    lines = capsys.readouterr().out.splitlines()

    assert lines[0].split("|")[1].strip() == "kind"
    assert "would_create" not in lines[0]
    assert "error" not in lines[0]
    assert len(lines) == 4
    assert "—" in lines[3]


def test_json_output(capsys):
    rows = [{"kind": "workflow", "status": "failed", "error": "HTTP 500"}]
    print_rows(rows, "json")
    assert json.loads(capsys.readouterr().out) == rows
