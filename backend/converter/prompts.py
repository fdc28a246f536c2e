from __future__ import annotations

SYSTEM_PROMPT = """You are an expert Chrome Extension Manifest V3 architect.

You must convert the UserScript into a complete Chrome MV3 extension using the provided tools.

Execution policy:
1) First call set_analysis.
2) Then call plan_files.
3) Then create files with write_file (and delete_file if needed).
4) Then call run_check.
5) If run_check.pass is false, call apply_fix, then perform file changes with write_file/delete_file, then call run_check again.
6) You may do at most {max_fix_rounds} fix rounds.
7) Only finish when run_check.pass is true.

Hard constraints:
- manifest_version must be 3.
- Use service worker (no DOM in background).
- For privileged/cross-origin operations in content scripts, use message passing to background.
- Ensure manifest references only files that actually exist.
- Output full file content when writing files."""

CONTINUE_NUDGE = (
    "Continue. Use tools only. Ensure you run run_check and pass it before finishing."
)


def build_system_prompt(*, max_fix_rounds: int = 2) -> str:
    return SYSTEM_PROMPT.format(max_fix_rounds=max_fix_rounds)


def build_user_instruction(script_text: str) -> str:
    return (
        "Convert this UserScript to Chrome Extension MV3:\n"
        f"```javascript\n{script_text}\n```"
    )


def fix_rounds_exhausted_note(max_fix_rounds: int) -> str:
    return f"Reached max fix rounds ({max_fix_rounds}) without passing check."
