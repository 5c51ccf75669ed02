from __future__ import annotations

from code_foundry.collaborators import (
    ArtifactValidator,
    CodeOptimizer,
    CompletionProvider,
    HeuristicQualityAnalyzer,
    QualityAnalyzer,
    StaticTemplateCatalog,
    StructuralValidator,
    TemplateSearch,
    WhitespaceOptimizer,
)
from code_foundry.generator import LocalGenerator


def test_default_collaborators_given_protocols_when_checked_then_each_satisfies_its_interface() -> None:
    # Given
    # The shipped default implementations.

    # When
    checks = [
        isinstance(LocalGenerator(), CompletionProvider),
        isinstance(StructuralValidator(), ArtifactValidator),
        isinstance(HeuristicQualityAnalyzer(), QualityAnalyzer),
        isinstance(WhitespaceOptimizer(), CodeOptimizer),
        isinstance(StaticTemplateCatalog(), TemplateSearch),
    ]

    # Then
    assert all(checks)


def test_structural_validator_given_balanced_code_when_validated_then_report_is_valid() -> None:
    # Given
    content = "export const f = (x: number) => {\n  const label = '}';\n  return [x];\n};\n"

    # When
    report = StructuralValidator().validate(content, "typescript")

    # Then
    assert report.is_valid is True
    assert report.issues == []


def test_structural_validator_given_unclosed_brace_when_validated_then_issue_is_reported() -> None:
    # Given
    content = "function broken() {\n  if (x) {\n    return 1;\n}\n"

    # When
    report = StructuralValidator().validate(content, "javascript")

    # Then
    assert report.is_valid is False
    assert report.issues == ["1 unclosed bracket(s)"]


def test_structural_validator_given_placeholder_marker_when_validated_then_issue_is_reported() -> None:
    # Given
    content = "def handler():\n    # TODO: implement later\n    return None\n"

    # When
    report = StructuralValidator().validate(content, "python")

    # Then
    assert report.is_valid is False
    assert any("TODO" in issue for issue in report.issues)


def test_structural_validator_given_python_floor_division_when_validated_then_it_is_not_a_comment() -> None:
    # Given
    content = "def half(x):\n    return (x // 2)\n"

    # When
    report = StructuralValidator().validate(content, "python")

    # Then
    assert report.is_valid is True


def test_structural_validator_given_empty_content_when_validated_then_report_is_invalid() -> None:
    # Given
    content = "   \n"

    # When
    report = StructuralValidator().validate(content, "tsx")

    # Then
    assert report.is_valid is False
    assert report.issues == ["empty content"]


def test_quality_analyzer_given_typed_documented_code_when_analyzed_then_score_is_high() -> None:
    # Given
    content = "// Adds two numbers.\nexport const add = (a: number, b: number): number => a + b;\n"

    # When
    report = HeuristicQualityAnalyzer().analyze(content, "typescript")

    # Then
    assert 90.0 <= report.overall_score <= 100.0
    assert set(report.metrics) == {"complexity", "maintainability", "type_safety", "documentation"}


def test_quality_analyzer_given_any_types_when_analyzed_then_type_safety_drops() -> None:
    # Given
    clean = "export const id = (value: string): string => value;\n"
    loose = "export const id = (value: any): any => value;\n"

    # When
    clean_report = HeuristicQualityAnalyzer().analyze(clean, "typescript")
    loose_report = HeuristicQualityAnalyzer().analyze(loose, "typescript")

    # Then
    assert loose_report.metrics["type_safety"] == 90.0
    assert loose_report.overall_score < clean_report.overall_score


def test_quality_analyzer_given_empty_content_when_analyzed_then_score_is_zero() -> None:
    # Given
    content = ""

    # When
    report = HeuristicQualityAnalyzer().analyze(content, "tsx")

    # Then
    assert report.overall_score == 0.0


def test_whitespace_optimizer_given_messy_code_when_optimized_then_changes_are_listed() -> None:
    # Given
    content = "var a = 1;   \n\n\n\nvar b = 2;"

    # When
    report = WhitespaceOptimizer().optimize(content, "javascript", ["whitespace", "best_practices"])

    # Then
    assert report.optimized_code == "let a = 1;\n\nlet b = 2;\n"
    assert report.changes == [
        "removed trailing whitespace",
        "collapsed blank lines",
        "replaced 2 var declaration(s) with let",
        "added final newline",
    ]


def test_whitespace_optimizer_given_python_when_best_practices_requested_then_var_rewrite_is_skipped() -> None:
    # Given
    content = "var = 1\n"

    # When
    report = WhitespaceOptimizer().optimize(content, "python", ["best_practices"])

    # Then
    assert report.optimized_code == content
    assert report.changes == []


def test_template_catalog_given_keyword_when_searched_then_matching_templates_are_returned() -> None:
    # Given
    catalog = StaticTemplateCatalog()

    # When
    by_keyword = catalog.search("Card")
    by_tag = catalog.search("Orders", tags=["crud"])
    by_category = catalog.search("dashboard", category="express")

    # Then
    assert [template.name for template in by_keyword] == ["card"]
    assert [template.name for template in by_tag] == ["rest-api"]
    assert by_category == []
