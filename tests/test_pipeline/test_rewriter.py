"""Tests for the LLM bullet rewriter."""

import pytest

from resume_fit.clients.llm_client import LLMResponse
from resume_fit.errors import ExternalServiceError
from resume_fit.pipeline.rewriter import BulletRewriter, _clean, check_style


class TestClean:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Cut p99 latency by 40%", "Cut p99 latency by 40%"),
            ("```\n- Cut p99 latency by 40%\n```", "Cut p99 latency by 40%"),
            ('"- Cut latency"', "Cut latency"),
            ("• Cut   latency\n by 40%", "Cut latency by 40%"),
            ("  ", ""),
        ],
    )
    def test_clean(self, raw, expected):
        assert _clean(raw) == expected


class TestBulletRewriter:
    async def test_rewrite_returns_cleaned_text(self, mock_llm_client):
        mock_llm_client.generate.return_value = LLMResponse(text="- Built Go services", input_tokens=10, output_tokens=5)
        rewriter = BulletRewriter(mock_llm_client, model="rewrite-model")

        result = await rewriter.rewrite("Built many Go services for the platform team", 30, ["synergy"])

        assert result == "Built Go services"
        kwargs = mock_llm_client.generate.call_args.kwargs
        assert kwargs["model"] == "rewrite-model"
        assert "At most 30 characters" in kwargs["prompt"]
        assert "Do not use these phrases: synergy" in kwargs["prompt"]

    async def test_no_phrase_rule_without_phrases(self, mock_llm_client):
        mock_llm_client.generate.return_value = LLMResponse(text="Short", input_tokens=1, output_tokens=1)
        await BulletRewriter(mock_llm_client).rewrite("Longer text", 5)
        assert "Do not use" not in mock_llm_client.generate.call_args.kwargs["prompt"]

    async def test_empty_reply_raises(self, mock_llm_client):
        mock_llm_client.generate.return_value = LLMResponse(text="```\n```", input_tokens=1, output_tokens=1)
        with pytest.raises(ExternalServiceError) as exc:
            await BulletRewriter(mock_llm_client).rewrite("Some bullet", 5)
        assert exc.value.service == "rewrite"

    async def test_llm_error_propagates(self, mock_llm_client):
        mock_llm_client.generate.side_effect = ExternalServiceError("llm", "overloaded")
        with pytest.raises(ExternalServiceError, match="overloaded"):
            await BulletRewriter(mock_llm_client).rewrite("Some bullet", 5)


ORIGINAL = "Tuned SQL queries and indexes, cutting report generation time by 60% for finance"


class TestCheckStyle:
    def test_good_rewrite_passes(self):
        checks = check_style("Tuned SQL queries and indexes, cutting report time by 60%", ORIGINAL, 60)
        assert checks.failures == []

    @pytest.mark.parametrize(
        "rewritten,failed",
        [
            ("Responsible for SQL queries and indexes, cutting report time by 60%", "strong_verb"),
            ("Tuned SQL queries and indexes, cutting report generation time a lot", "quantified"),
            ("Tuned SQL by 60%", "target_length"),
        ],
    )
    def test_single_failure(self, rewritten, failed):
        checks = check_style(rewritten, ORIGINAL, 70)
        assert [name for name in ("strong_verb", "quantified", "target_length") if not getattr(checks, name)] == [failed]

    def test_ed_suffix_counts_as_action_verb(self):
        assert check_style("Mentored two engineers", "Mentored two engineers", 22).strong_verb

    def test_unquantified_original_needs_no_numbers(self):
        assert check_style("Built Go services", "Built many Go services", 17).quantified


class TestStyleRetry:
    async def test_retries_once_with_feedback(self, mock_llm_client):
        mock_llm_client.generate.side_effect = [
            LLMResponse(text="Tuned SQL queries and indexes, cutting report time a lot", input_tokens=1, output_tokens=1),
            LLMResponse(text="Tuned SQL queries and indexes, cutting report time by 60%", input_tokens=1, output_tokens=1),
        ]
        result = await BulletRewriter(mock_llm_client).rewrite(ORIGINAL, 60)

        assert result == "Tuned SQL queries and indexes, cutting report time by 60%"
        assert mock_llm_client.generate.call_count == 2
        retry_prompt = mock_llm_client.generate.call_args.kwargs["prompt"]
        assert "keep the numbers" in retry_prompt
        assert "cutting report time a lot" in retry_prompt

    async def test_no_retry_when_checks_pass(self, mock_llm_client):
        mock_llm_client.generate.return_value = LLMResponse(
            text="Tuned SQL queries and indexes, cutting report time by 60%", input_tokens=1, output_tokens=1
        )
        await BulletRewriter(mock_llm_client).rewrite(ORIGINAL, 60)
        assert mock_llm_client.generate.call_count == 1

    async def test_keeps_first_attempt_when_retry_is_worse(self, mock_llm_client):
        first = "Tuned SQL queries and indexes, cutting report time a lot"
        mock_llm_client.generate.side_effect = [
            LLMResponse(text=first, input_tokens=1, output_tokens=1),
            LLMResponse(text="SQL work", input_tokens=1, output_tokens=1),
        ]
        assert await BulletRewriter(mock_llm_client).rewrite(ORIGINAL, 60) == first

    async def test_failed_retry_keeps_first_attempt(self, mock_llm_client):
        first = "Tuned SQL queries and indexes, cutting report time a lot"
        mock_llm_client.generate.side_effect = [
            LLMResponse(text=first, input_tokens=1, output_tokens=1),
            ExternalServiceError("llm", "overloaded"),
        ]
        assert await BulletRewriter(mock_llm_client).rewrite(ORIGINAL, 60) == first
