"""
Unit tests for services.chat_service module.
Tests pagination helpers, history windowing and the failure paths of the
reply flow against a real (in-memory) database.
"""
import pytest
from tortoise.exceptions import OperationalError

from app.core.errors import InternalError, NotFoundError, UpstreamError
from app.models import Conversation, Message, Role
from app.services.chat_service import MAX_PAGE_SIZE, ChatService, Page, clamp_page


class TestClampPage:
    def test_defaults_when_missing(self):
        assert clamp_page(None, None, 20) == (1, 20)

    def test_page_floor_is_one(self):
        assert clamp_page(0, 10, 20) == (1, 10)
        assert clamp_page(-3, 10, 20) == (1, 10)

    def test_page_size_is_clamped(self):
        assert clamp_page(1, 500, 20) == (1, MAX_PAGE_SIZE)
        assert clamp_page(1, 0, 20) == (1, 1)

    def test_total_pages_rounds_up(self):
        assert Page(items=[], total=41, page=1, page_size=20).total_pages == 3
        assert Page(items=[], total=0, page=1, page_size=20).total_pages == 0


class TestRoleParse:
    def test_known_roles(self):
        assert Role.parse("assistant") is Role.ASSISTANT
        assert Role.parse(" System ") is Role.SYSTEM

    def test_unknown_role_is_user(self):
        assert Role.parse("tool") is Role.USER
        assert Role.parse(None) is Role.USER


@pytest.mark.asyncio
class TestConversationAccess:
    async def test_other_users_conversation_is_not_found(self, chat_service, create_user):
        owner, _ = await create_user()
        stranger, _ = await create_user()
        conversation = await chat_service.create_conversation(owner.id, "Private")

        with pytest.raises(NotFoundError):
            await chat_service.get_conversation(stranger.id, conversation.id)
        with pytest.raises(NotFoundError):
            await chat_service.list_messages(stranger.id, conversation.id)

    async def test_send_to_foreign_conversation_persists_nothing(self, chat_service, create_user, provider):
        owner, _ = await create_user()
        stranger, _ = await create_user()
        conversation = await chat_service.create_conversation(owner.id, "Private")

        with pytest.raises(NotFoundError):
            await chat_service.send_message(stranger.id, conversation.id, "hello?")

        assert await Message.filter(conversation_id=conversation.id).count() == 0
        assert provider.calls == []

    async def test_rename_changes_title(self, chat_service, create_user):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Old")

        updated = await chat_service.update_conversation(user.id, conversation.id, "New")

        assert updated.title == "New"
        assert (await Conversation.get(id=conversation.id)).title == "New"


@pytest.mark.asyncio
class TestReplyFlow:
    async def test_history_is_most_recent_messages_oldest_first(self, db, provider, create_user):
        chat = ChatService(provider, history_limit=5)
        user, _ = await create_user()
        conversation = await chat.create_conversation(user.id, "Long")
        for i in range(8):
            await Message.create(conversation_id=conversation.id, role=Role.USER.value, content=f"m{i}")

        await chat.send_message(user.id, conversation.id, "latest")

        turns = provider.calls[-1]
        assert [t.content for t in turns] == ["m4", "m5", "m6", "m7", "latest"]

    async def test_send_message_bumps_updated_at(self, chat_service, create_user):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")

        _, assistant = await chat_service.send_message(user.id, conversation.id, "hi")

        stored_conversation = await Conversation.get(id=conversation.id)
        stored_assistant = await Message.get(id=assistant.id)
        assert stored_assistant.role == Role.ASSISTANT.value
        assert stored_conversation.updated_at == stored_assistant.created_at

    async def test_provider_error_keeps_user_message(self, chat_service, create_user, provider):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        provider.error = UpstreamError("rate limited")

        with pytest.raises(UpstreamError):
            await chat_service.send_message(user.id, conversation.id, "hi")

        stored = await Message.filter(conversation_id=conversation.id).all()
        assert [(m.role, m.content) for m in stored] == [("user", "hi")]

    async def test_empty_reply_is_upstream_error(self, chat_service, create_user, provider):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        provider.reply = ""

        with pytest.raises(UpstreamError):
            await chat_service.send_message(user.id, conversation.id, "hi")

        assert await Message.filter(conversation_id=conversation.id, role="assistant").count() == 0

    async def test_stream_delivers_chunks_and_persists_reply(self, chat_service, create_user, provider):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        received = []

        async def on_chunk(text):
            received.append(text)

        user_message, assistant = await chat_service.stream_message(user.id, conversation.id, "hi", on_chunk)

        assert received == provider.chunks
        assert assistant.content == "".join(provider.chunks)
        assert user_message.content == "hi"

    async def test_stream_abort_keeps_only_user_message(self, chat_service, create_user, provider):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        provider.fail_after = 1
        received = []

        async def on_chunk(text):
            received.append(text)

        with pytest.raises(UpstreamError, match="provider aborted"):
            await chat_service.stream_message(user.id, conversation.id, "hi", on_chunk)

        assert received == provider.chunks[:1]
        stored = await Message.filter(conversation_id=conversation.id).all()
        assert [m.role for m in stored] == ["user"]

    async def test_stream_callback_failure_stops_stream(self, chat_service, create_user):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")

        async def on_chunk(text):
            raise ConnectionError("client went away")

        with pytest.raises(ConnectionError):
            await chat_service.stream_message(user.id, conversation.id, "hi", on_chunk)

        assert await Message.filter(conversation_id=conversation.id, role="assistant").count() == 0


@pytest.mark.asyncio
class TestDeleteConversation:
    async def test_delete_hides_conversation_and_messages(self, chat_service, create_user):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        await chat_service.send_message(user.id, conversation.id, "hi")

        await chat_service.delete_conversation(user.id, conversation.id)

        with pytest.raises(NotFoundError):
            await chat_service.get_conversation(user.id, conversation.id)
        assert await Message.alive(conversation_id=conversation.id).count() == 0
        # rows are kept, only marked
        assert await Message.filter(conversation_id=conversation.id).count() == 2

    async def test_failed_delete_rolls_back(self, chat_service, create_user, monkeypatch):
        user, _ = await create_user()
        conversation = await chat_service.create_conversation(user.id, "Trip")
        await chat_service.send_message(user.id, conversation.id, "hi")

        async def broken_save(self, *args, **kwargs):
            raise OperationalError("disk I/O error")

        # messages are marked first, then the conversation write fails
        monkeypatch.setattr(Conversation, "save", broken_save)

        with pytest.raises(InternalError):
            await chat_service.delete_conversation(user.id, conversation.id)

        assert await Message.alive(conversation_id=conversation.id).count() == 2
        assert (await chat_service.get_conversation(user.id, conversation.id)).id == conversation.id
