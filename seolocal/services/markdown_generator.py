"""
Markdown Report Generator

Generates markdown from stored audits: a human-readable audit report and
an AI-ready prompt asking a coding assistant to fix each page's issues.
"""

from datetime import datetime, timezone

from seolocal.schemas.audit import LocalAudit, LocalPageAnalysis
from seolocal.services.urls import extract_path_from_url

FIX_PROMPT_INTRO = (
    "Please edit the following pages in order to improve SEO on my website by solving "
    "the list of issues associated with each page. Make sure to stay on topic if you need "
    "to edit visible text and to not modify the site's current branding, make sure to "
    "refactor the addition of meta tags as much as possible to not duplicate code "
    "everywhere, and make sure that all your changes do not break the site's code in any way."
)


class MarkdownGenerator:
    """Generates markdown documents from audit data."""

    @staticmethod
    def failed_checks(page: LocalPageAnalysis) -> list:
        """Failed checks, heaviest first."""
        failed = [check for check in page.checks.values() if not check.passed]
        return sorted(failed, key=lambda check: (-check.weight, check.message))

    @classmethod
    def generate_fix_prompt(cls, pages: list[LocalPageAnalysis]) -> str:
        """
        Build a prompt listing every page with its current metadata and the
        failed checks to fix, most important first.
        """
        total_issues = sum(len(cls.failed_checks(page)) for page in pages)

        lines = [
            FIX_PROMPT_INTRO,
            "",
            "## Summary",
            f"- Total Pages: {len(pages)}",
            f"- Total Issues: {total_issues}",
            "",
        ]

        for i, page in enumerate(pages, 1):
            failed = cls.failed_checks(page)
            score = page.seo_score or 0.0

            lines.extend([
                f"## {i}. Path: {extract_path_from_url(page.url)}",
                "",
                f"- SEO Score: {score:.1f}/100",
                f"- Issues: {len(failed)}",
                "",
                "### Current Metadata",
                f"- Title: {page.title}",
                f"- Meta Description: {page.meta_description}",
                f"- H1: {page.h1}",
                "",
            ])

            if failed:
                lines.extend([
                    "### Issues to Fix (from most important to less important to fix)",
                    "",
                ])
                for j, check in enumerate(failed, 1):
                    lines.extend([
                        f"**{i}.{j}.** Issue: {check.message} (Weight: {check.weight})",
                        "",
                    ])
            elif page.indexability_reason:
                lines.extend([
                    "### Issues to Fix (from most important to less important to fix)",
                    "",
                    f"**{i}.1.** Issue: {page.indexability_reason}",
                    "",
                ])

            lines.extend(["---", ""])

        return "\n".join(lines)

    @classmethod
    def generate_audit_report(cls, audit: LocalAudit, generated_at: datetime | None = None) -> str:
        """Human-readable summary of a completed audit."""
        generated_at = generated_at or datetime.now(timezone.utc)
        summary = audit.summary
        score = audit.overall_score if audit.overall_score is not None else 0.0

        lines = [
            "# SEO Audit Report",
            "",
            f"**Site:** {audit.base_url}  ",
            f"**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M UTC')}  ",
            f"**Status:** {audit.status.value}  ",
            f"**Overall Score:** {score:.1f}/100",
            "",
            "---",
            "",
        ]

        if summary is None:
            lines.append("No summary available yet.")
            return "\n".join(lines) + "\n"

        lines.extend([
            "## Overview",
            "",
            "| Metric | Value |",
            "|--------|-------|",
            f"| Pages analyzed | {summary.total_pages} |",
            f"| Issues found | {summary.issues_found} |",
            f"| Pages with critical issues | {summary.critical_issues} |",
            f"| Pages with warnings | {summary.warning_issues} |",
            f"| Checks passed | {summary.passed_checks} |",
            f"| Checks failed | {summary.failed_checks} |",
            f"| Duplicate titles | {summary.duplicate_titles_count} |",
            f"| Duplicate descriptions | {summary.duplicate_descriptions_count} |",
            f"| Orphaned pages | {summary.orphaned_pages_count} |",
            "",
            "### Score Distribution",
            "",
            "| Score | Pages |",
            "|-------|-------|",
            f"| 90+ | {summary.pages_score_90_plus} |",
            f"| 70-89 | {summary.pages_score_70_89} |",
            f"| 50-69 | {summary.pages_score_50_69} |",
            f"| Below 50 | {summary.pages_score_below_50} |",
            "",
        ])

        if summary.top_issues:
            lines.extend(["## Top Issues", ""])
            lines.extend(f"{idx}. {issue}" for idx, issue in enumerate(summary.top_issues, 1))
            lines.append("")

        if summary.recommendations:
            lines.extend(["## Recommendations", ""])
            lines.extend(f"- {rec}" for rec in summary.recommendations)
            lines.append("")

        if audit.pages:
            lines.extend([
                "## Pages",
                "",
                "| Path | Score | Issues |",
                "|------|-------|--------|",
            ])
            for page in sorted(audit.pages, key=lambda p: (p.seo_score or 0.0, p.url)):
                page_score = f"{page.seo_score:.1f}" if page.seo_score is not None else "-"
                lines.append(f"| {extract_path_from_url(page.url)} | {page_score} | {page.issues_count} |")
            lines.append("")

        lines.extend([
            "---",
            "",
            "*Report generated by seolocal*",
        ])

        return "\n".join(lines) + "\n"
