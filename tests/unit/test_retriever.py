"""Unit tests for context assembly."""
from docchat.rag.models import ScoredChunk
from docchat.rag.retriever import (
    CONTEXT_SEPARATOR,
    GROUNDING_INSTRUCTIONS,
    NO_CONTEXT_INSTRUCTIONS,
    build_messages,
    format_context,
)


def scored(text, source_id="report.pdf", index=0, similarity=0.9):
    return ScoredChunk(
        text=text,
        source_id=source_id,
        index=index,
        start_offset=0,
        end_offset=len(text),
        similarity=similarity,
    )


class TestFormatContext:
    def test_excerpts_are_attributed_and_separated(self):
        context = format_context(
            [scored("Revenue grew 10%.", index=3), scored("Costs fell.", "memo.md", 0)]
        )

        parts = context.split(CONTEXT_SEPARATOR)
        assert parts == [
            "[Source 1: report.pdf #3]\nRevenue grew 10%.",
            "[Source 2: memo.md #0]\nCosts fell.",
        ]

    def test_empty_results_give_empty_context(self):
        assert format_context([]) == ""

    def test_budget_truncates_trailing_excerpts(self):
        results = [scored("a" * 300, index=i) for i in range(5)]

        context = format_context(results, max_chars=700)

        assert len(context) <= 700
        assert "[Source 1:" in context
        assert "[Source 2:" in context
        assert "[Source 4:" not in context


    def test_truncated_excerpt_stays_within_budget(self):
        context = format_context([scored("b" * 500)], max_chars=300)

        assert len(context) == 300
        assert context.startswith("[Source 1: report.pdf #0]\nbbb")
        assert context.endswith("b...")


class TestBuildMessages:
    def test_grounded_prompt_layout(self):
        history = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ]

        messages = build_messages("What grew?", [scored("Revenue grew.")], history=history)

        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith(GROUNDING_INSTRUCTIONS)
        assert "[Source 1: report.pdf #0]\nRevenue grew." in messages[0]["content"]
        assert messages[1:3] == history
        assert messages[-1] == {"role": "user", "content": "What grew?"}

    def test_no_results_uses_fallback_instructions(self):
        messages = build_messages("Anything?", [])

        assert messages == [
            {"role": "system", "content": NO_CONTEXT_INSTRUCTIONS},
            {"role": "user", "content": "Anything?"},
        ]
