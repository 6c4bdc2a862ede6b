from limsrag.retrieval import NO_INFO_MESSAGE, assemble_prompt, compose_answer, get_assembly_stats


def test_empty_retrieval_gives_no_info_message():
    assert compose_answer("anything", []) == NO_INFO_MESSAGE


def test_custom_no_info_message():
    assert compose_answer("anything", [], "Nothing found.") == "Nothing found."


def test_answer_contains_query_and_contexts_in_order():
    query = "How do I calibrate the pH meter?"
    contexts = ["Second best? No, best record.", "Runner-up record.", "Third record."]

    answer = compose_answer(query, contexts)

    assert query in answer
    positions = [answer.index(c) for c in contexts]
    assert positions == sorted(positions)
    assert "\n\n".join(contexts) in answer
    assert "simplified response" in answer


def test_assemble_prompt():
    prompt = assemble_prompt("What causes low signal?", ["Dirty detector.", "Clogged column."])

    assert "User Question: What causes low signal?" in prompt
    assert "Dirty detector.\n\nClogged column." in prompt
    assert prompt.endswith("Answer:")

    stats = get_assembly_stats("q", ["ab", "cde"], prompt)
    assert stats["contexts_used"] == 2
    assert stats["context_chars"] == 5
    assert stats["prompt_chars"] == len(prompt)
