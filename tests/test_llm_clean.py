from stock_valuation.workflows.nodes.llm_clean import clean_llm_output


def test_clean_llm_output_strips_thinking_and_quotes():
    raw = "*Thinking...*\n\n> step 1\n> step 2\n\nMain body text.\n\nMore."
    cleaned = clean_llm_output(raw)
    assert "Thinking" not in cleaned
    assert "step 1" not in cleaned
    assert cleaned.startswith("Main body text.")


def test_clean_llm_output_handles_empty():
    assert clean_llm_output("") == ""
    assert clean_llm_output(None) == ""


def test_clean_llm_output_drops_fences_and_openers():
    raw = "Sure! Here is the summary:\n```markdown\n## Overview\nOkta-like margins are strong.\n```"
    assert clean_llm_output(raw) == "Overview\nOkta-like margins are strong."
