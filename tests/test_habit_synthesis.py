import json
from datetime import date, timedelta

import httpx
import pytest

from watchwise.errors import InsufficientData, MissingCredential, UpstreamUnavailable
from watchwise.models import Habit
from watchwise.prompts import DEFAULT_HABITS
from watchwise.services.habit_synthesis import (
    DefaultHabits,
    ParsedHabits,
    generate_habits,
    parse_habits,
    strip_code_fences,
)

HABITS_JSON = json.dumps(
    [
        {"title": "Cap Shorts at 20 minutes", "priority": "HIGH", "category": "Content Control", "description": "Timer."},
        {"title": "One lecture first", "priority": "medium", "category": "Learning", "description": "Learn first."},
        {"title": "Screens off at 11", "priority": "low", "category": "Sleep", "description": "Wind down."},
    ]
)


class TestParseHabits:
    def test_plain_json_array(self):
        batch = parse_habits(HABITS_JSON)
        assert isinstance(batch, ParsedHabits)
        assert [h.priority for h in batch.habits] == ["high", "medium", "low"]
        assert batch.habits[0].title == "Cap Shorts at 20 minutes"

    def test_fenced_json(self):
        batch = parse_habits(f"```json\n{HABITS_JSON}\n```")
        assert isinstance(batch, ParsedHabits)
        assert len(batch.habits) == 3

    def test_array_embedded_in_chatter(self):
        batch = parse_habits(f"Sure! Here are your habits:\n{HABITS_JSON}\nGood luck.")
        assert isinstance(batch, ParsedHabits)
        assert len(batch.habits) == 3

    def test_wrapped_in_habits_key(self):
        batch = parse_habits(json.dumps({"habits": json.loads(HABITS_JSON)}))
        assert isinstance(batch, ParsedHabits)

    def test_invalid_items_are_dropped(self):
        items = json.loads(HABITS_JSON) + [
            {"title": "Bad priority", "priority": "urgent"},
            {"title": "", "priority": "low"},
            "not an object",
        ]
        batch = parse_habits(json.dumps(items))
        assert isinstance(batch, ParsedHabits)
        assert len(batch.habits) == 3

    def test_more_than_five_is_capped(self):
        items = [{"title": f"Habit {i}", "priority": "low"} for i in range(8)]
        batch = parse_habits(json.dumps(items))
        assert isinstance(batch, ParsedHabits)
        assert len(batch.habits) == 5

    @pytest.mark.parametrize("text", ["", "I cannot help with that.", "{\"title\": 1}", "[1, 2", None])
    def test_unusable_output_gives_defaults(self, text):
        batch = parse_habits(text)
        assert isinstance(batch, DefaultHabits)
        assert [h.title for h in batch.habits] == [h["title"] for h in DEFAULT_HABITS]

    def test_all_items_invalid_gives_defaults(self):
        batch = parse_habits(json.dumps([{"title": "No priority"}]))
        assert isinstance(batch, DefaultHabits)
        assert batch.reason == "no_valid_habits"

    def test_strip_code_fences_without_closing_fence(self):
        assert strip_code_fences("```json\n[1]") == "[1]"


class TestGenerateHabits:
    async def test_generated_habits_are_stored_for_today(self, db, add_records, llm_factory, chat_reply, now):
        add_records("user-1", [("a", 30, now - timedelta(hours=2)), ("b", 4000, now - timedelta(days=1))])
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return chat_reply(HABITS_JSON)

        rows = await generate_habits(db, user_id="user-1", llm=llm_factory(handler), now=now, tz_name="UTC")

        assert len(rows) == 3
        assert all(r.date == date(2026, 10, 19) and r.is_active for r in rows)
        user_message = sent[0]["messages"][1]["content"]
        assert "1 hours per week" in user_message
        assert "50% are Shorts" in user_message

    async def test_transport_error_falls_back_to_defaults(self, db, add_records, llm_factory, now):
        add_records("user-1", [("a", 30, now - timedelta(hours=2))])

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        rows = await generate_habits(db, user_id="user-1", llm=llm_factory(handler), now=now, tz_name="UTC")

        assert [r.title for r in rows] == [h["title"] for h in DEFAULT_HABITS]
        assert all(r.date == date(2026, 10, 19) and r.is_active for r in rows)

    async def test_malformed_payload_falls_back_to_defaults(self, db, add_records, llm_factory, now):
        add_records("user-1", [("a", 30, now - timedelta(hours=2))])
        rows = await generate_habits(
            db, user_id="user-1", llm=llm_factory(lambda r: httpx.Response(200, json={"choices": []})), now=now
        )
        assert len(rows) == len(DEFAULT_HABITS)

    async def test_http_error_fails_without_storing(self, db, add_records, llm_factory, chat_reply, now):
        add_records("user-1", [("a", 30, now - timedelta(hours=2))])
        with pytest.raises(UpstreamUnavailable):
            await generate_habits(
                db, user_id="user-1", llm=llm_factory(lambda r: chat_reply("", status_code=429)), now=now
            )
        assert db.query(Habit).count() == 0

    async def test_empty_window_never_calls_generator(self, db, llm_factory, chat_reply, now):
        calls = []

        def handler(request):
            calls.append(request)
            return chat_reply(HABITS_JSON)

        with pytest.raises(InsufficientData):
            await generate_habits(db, user_id="user-1", llm=llm_factory(handler), now=now)
        assert calls == []

    async def test_missing_api_key(self, db, llm_factory, chat_reply, now):
        llm = llm_factory(lambda r: chat_reply(HABITS_JSON), overrides={"llm_api_key": None})
        with pytest.raises(MissingCredential):
            await generate_habits(db, user_id="user-1", llm=llm, now=now)

    async def test_earlier_habits_are_deactivated(self, db, add_records, llm_factory, chat_reply, now):
        add_records("user-1", [("a", 30, now - timedelta(hours=2))])
        yesterday = Habit(user_id="user-1", title="Old", priority="low", date=date(2026, 10, 18), is_active=True)
        same_day = Habit(user_id="user-1", title="Earlier today", priority="low", date=date(2026, 10, 19), is_active=True)
        other_user = Habit(user_id="user-2", title="Theirs", priority="low", date=date(2026, 10, 18), is_active=True)
        db.add_all([yesterday, same_day, other_user])
        db.commit()

        await generate_habits(db, user_id="user-1", llm=llm_factory(lambda r: chat_reply(HABITS_JSON)), now=now)

        db.expire_all()
        assert db.get(Habit, yesterday.id).is_active is False
        assert db.get(Habit, same_day.id).is_active is True
        assert db.get(Habit, other_user.id).is_active is True
        assert db.query(Habit).filter(Habit.user_id == "user-1", Habit.is_active.is_(True)).count() == 4
