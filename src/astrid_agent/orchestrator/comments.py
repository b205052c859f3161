"""Markdown bodies for the comments the agent posts on a task."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from astrid_agent.executors import ImplementationPlan
    from astrid_agent.webhooks import CallbackData

SYSTEM_MARKER = "<!-- SYSTEM_GENERATED_COMMENT -->"

# Text that marks a task whose earlier run failed; see Orchestrator backfill
FAILURE_MARKERS = ("Workflow Failed", "❌ **Error**", "Planning produced no files")

ESTIMATED_TIME = {
    "simple": "10-15 minutes",
    "medium": "20-30 minutes",
    "complex": "30-45 minutes",
}

MAX_QUOTED_FEEDBACK = 500
NON_SUBSTANTIVE = ("package-lock.json", ".lock", "node_modules")


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def status_comment(title: str, message: str) -> str:
    """Title line, blank line, message."""
    return f"{title}\n\n{message}"


def starting_comment(title: str) -> str:
    return status_comment("🤖 **Starting work**", f'Working on: **"{title}"**\n\nAnalyzing codebase...')


def plan_comment(plan: ImplementationPlan) -> str:
    """Human-readable rendering of an implementation plan."""
    files = "\n".join(f"- `{f.path}`: {f.purpose}" for f in plan.files)
    considerations = (
        f"**Considerations:** {', '.join(plan.considerations)}\n\n" if plan.considerations else ""
    )
    estimate = ESTIMATED_TIME.get(plan.estimated_complexity, ESTIMATED_TIME["medium"])
    return (
        "📋 **Implementation Plan**\n\n"
        f"## 🎯 What I'll Do\n{plan.summary}\n\n{plan.approach}\n\n"
        f"## 📁 Files to Modify\n{files}\n\n"
        f"**Complexity:** {plan.estimated_complexity} (~{estimate})\n\n"
        f"{considerations}"
    ).rstrip()


def awaiting_approval_comment(file_count: int, retried: bool = False) -> str:
    revise = "provide more feedback to revise" if retried else "provide feedback to revise the plan"
    return status_comment(
        "⏸️ **Awaiting Approval**",
        f"I've created an implementation plan with {plural(file_count, 'file')}.\n\n"
        f'**Reply "approve" or "lgtm" to start implementation**, or {revise}.',
    )


def approval_received_comment() -> str:
    return (
        "✅ **Approval Received**\n\nThanks! Starting implementation now...\n\n"
        f"*This is an automated response to your approval*\n\n{SYSTEM_MARKER}"
    )


def implementing_comment(file_count: int) -> str:
    return status_comment(
        "⚙️ **Implementing**",
        f"Plan approved! Starting implementation of {plural(file_count, 'file')}...",
    )


def implementation_comment(branch_name: str, pr_url: str | None, file_count: int) -> str:
    """Posted when changes are pushed and the workflow enters testing."""
    if pr_url:
        number = pr_url.rstrip("/").rsplit("/", 1)[-1]
        pr_line = f"- **PR**: [#{number}]({pr_url})"
        instructions = 'Test the changes in the PR and reply **"ship it"** when ready to deploy.'
    else:
        pr_line = "- **PR**: not created (branch pushed only)"
        instructions = 'Review the branch and reply **"ship it"** when ready to deploy.'
    return (
        "✅ **Implementation Complete - Ready for Testing**\n\n"
        f"## 📋 Summary\n{pr_line}\n- **Branch**: `{branch_name}`\n"
        f"- **Files changed**: {file_count}\n\n"
        f"⏳ Checks running\n\n{instructions}"
    )


def shipping_comment() -> str:
    return (
        "🚀 **Shipping to Production**\n\nDeploying your approved changes to production now!\n\n"
        f"*This is an automated response to your ship command*\n\n{SYSTEM_MARKER}"
    )


def change_request_comment(change_request: str) -> str:
    return (
        "🔄 **Change Request Received**\n\n"
        f"I understand you'd like me to modify the implementation:\n\n> {change_request}\n\n"
        "I'll analyze your request and update the code accordingly.\n\n"
        f"*This is an automated response to your change request*\n\n{SYSTEM_MARKER}"
    )


def changes_applied_comment(feedback: str, pr_url: str | None) -> str:
    pr = f"Updated {pr_url}" if pr_url else "Updated the branch"
    return f"🔄 **Changes applied**\n\n> {feedback}\n\n{pr}\n\nReady for review."


def retry_comment(feedback: str) -> str:
    quoted = feedback[:MAX_QUOTED_FEEDBACK]
    if len(feedback) > MAX_QUOTED_FEEDBACK:
        quoted += "..."
    return (
        "🔄 **Retrying with your feedback**\n\n"
        f"I'll use your clarification to try again:\n\n> {quoted}\n\n"
        f"Let me re-analyze the task with this additional context.\n\n{SYSTEM_MARKER}"
    )


def checks_passed_comment() -> str:
    return status_comment(
        "✅ **Checks passed**", 'All checks are green. Reply **"ship it"** to merge and deploy.'
    )


def error_comment(step: str, error: str) -> str:
    """Failure comment. Carries a failure marker so later comments can retry."""
    return status_comment("❌ **Error**", f"Issue during {step}:\n\n**{error}**")


def retry_description(description: str | None, previous_error: str, feedback: str) -> str:
    """Task description enriched with the failure and the human's clarification."""
    return (
        f"{description or ''}\n\n"
        "## User Clarification (after previous attempt failed)\n\n"
        f'The previous attempt failed with: "{previous_error}"\n\n'
        f"User provided this clarification:\n> {feedback}\n\n"
        "Please use this additional context to better understand what needs to be done."
    )


def revision_description(description: str | None, feedback: str) -> str:
    """Task description with requested changes appended."""
    return f"{description or ''}\n\n## Requested Changes\n\n{feedback}"


# --- Remote executor callbacks ---


def _files_line(files: list[str]) -> str:
    return ", ".join(f"`{f}`" for f in files)


def _clean_diff(diff: str) -> str:
    lines: list[str] = []
    skipping = False
    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            skipping = any(marker in line for marker in NON_SUBSTANTIVE)
        if not skipping:
            lines.append(line)
    return "\n".join(lines)


def remote_started_comment(session_id: str, data: CallbackData | None) -> str:
    message = (data.message if data else None) or "Beginning work on this task..."
    return f"## 🚀 Started Working\n\nSession ID: `{session_id}`\n\n{message}"


def remote_completed_comment(data: CallbackData | None) -> str:
    lines = ["## ✅ Task Completed"]
    if data is not None:
        if data.summary:
            lines += ["", data.summary.strip()]
        files = [f for f in data.files or [] if not any(m in f for m in NON_SUBSTANTIVE)]
        if files:
            lines += ["", "### Files Modified", _files_line(files)]
        if data.pr_url:
            lines += ["", "### Links", f"- **Pull Request:** {data.pr_url}"]
        if data.diff:
            cleaned = _clean_diff(data.diff)
            if cleaned.strip():
                lines += ["", "### Code Changes Preview", "```diff", cleaned, "```"]
    lines += ["", "---", '*Reply to this comment or comment "ship it" to merge and deploy.*']
    return "\n".join(lines)


def remote_waiting_comment(data: CallbackData | None) -> str:
    lines = ["## 🤔 Need Your Input"]
    if data is not None:
        question = data.question or data.message
        if question:
            lines += ["", question]
        if data.options:
            lines += ["", "### Options"]
            lines += [f"{i}. {option}" for i, option in enumerate(data.options, start=1)]
        if data.files:
            lines += ["", "### Files Modified", _files_line(data.files)]
        if data.pr_url:
            lines += ["", f"**Pull Request:** {data.pr_url}"]
    lines += ["", "---", "*Reply with your choice or provide more context.*"]
    return "\n".join(lines)


def remote_progress_comment(data: CallbackData | None) -> str:
    message = (data.message if data else None) or "Working on task..."
    return f"## 📊 Progress Update\n\n{message}"


def remote_error_comment(data: CallbackData | None) -> str:
    lines = ["## ❌ Error Encountered"]
    if data is not None:
        if data.error:
            lines += ["", data.error]
        if data.message:
            lines += ["", "### Context", "", data.message]
    lines += ["", "---", '*Reply with guidance or "retry" to try again.*']
    return "\n".join(lines)
