import pytest

from conftest import FakeLLM, OWNER
from notes_rag.core.errors import LLMError, NoteNotFoundError, UpstreamError, ValidationFailedError
from notes_rag.llm.suggest import parse_tags, parse_title, parse_title_and_tags, suggest_for_note

NOTE_TEXT = "Planted tomatoes and basil along the south fence this weekend."


def test_parse_title_strips_quotes():
    assert parse_title('  "Spring Garden Plan"\n') == "Spring Garden Plan"


@pytest.mark.parametrize(
    "answer, expected",
    [
        ('["garden", "vegetables"]', ["garden", "vegetables"]),
        ('Garden, "Vegetables", ', ["garden", "vegetables"]),
        ('{"tags": ["x"]}', []),
    ],
)
def test_parse_tags(answer, expected):
    assert parse_tags(answer) == expected


def test_parse_title_and_tags_handles_code_fences():
    answer = '```json\n{"title": "Garden Log", "tags": ["garden", 3, "log"]}\n```'

    result = parse_title_and_tags(answer)

    assert result.title == "Garden Log"
    assert result.tags == ["garden", "log"]


def test_parse_title_and_tags_rejects_prose():
    with pytest.raises(UpstreamError):
        parse_title_and_tags("Sure! Here is a title: Garden Log")


@pytest.mark.asyncio
async def test_title_mode(store):
    store.upsert_note(OWNER, "n1", content_text=NOTE_TEXT)
    llm = FakeLLM(answer='"Garden Planting"')

    result = await suggest_for_note(OWNER, "n1", "title", store, llm)

    assert result.title == "Garden Planting"
    assert result.tags is None
    assert llm.calls[0]["messages"] == [{"role": "user", "content": NOTE_TEXT}]


@pytest.mark.asyncio
async def test_tags_mode_offers_existing_tags(store):
    store.upsert_note(OWNER, "n1", content_text=NOTE_TEXT)
    store.set_tags(OWNER, ["garden", "recipes"])
    llm = FakeLLM(answer='["garden", "tomatoes"]')

    result = await suggest_for_note(OWNER, "n1", "tags", store, llm)

    assert result.tags == ["garden", "tomatoes"]
    assert result.title is None
    assert "garden, recipes" in llm.calls[0]["system_prompt"]


@pytest.mark.asyncio
async def test_both_mode(store):
    store.upsert_note(OWNER, "n1", content_text=NOTE_TEXT)
    llm = FakeLLM(answer='{"title": "Garden Day", "tags": ["garden"]}')

    result = await suggest_for_note(OWNER, "n1", "both", store, llm)

    assert result.title == "Garden Day"
    assert result.tags == ["garden"]
    assert "none yet" in llm.calls[0]["system_prompt"]


@pytest.mark.asyncio
async def test_missing_note(store):
    with pytest.raises(NoteNotFoundError):
        await suggest_for_note(OWNER, "ghost", "title", store, FakeLLM())


@pytest.mark.asyncio
async def test_too_little_content(store):
    store.upsert_note(OWNER, "n1", content_text="  hi  ")
    llm = FakeLLM()

    with pytest.raises(ValidationFailedError):
        await suggest_for_note(OWNER, "n1", "both", store, llm)
    assert llm.calls == []


@pytest.mark.asyncio
async def test_model_failure_propagates(store):
    store.upsert_note(OWNER, "n1", content_text=NOTE_TEXT)

    with pytest.raises(LLMError):
        await suggest_for_note(OWNER, "n1", "title", store, FakeLLM(error=LLMError("down")))
