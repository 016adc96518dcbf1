"""Tests for the action dispatch state machine."""

import json

import pytest

from category_agent import replies
from category_agent.dispatcher import ActionDispatcher, DispatchState, build_update_patch
from category_agent.errors import CategoryUpdateError, DirectoryConnectionError
from category_agent.intents import UpdateCategoryMetadata
from category_agent.wordpress_client import Category


def _reply(action, **payload):
    return json.dumps({"action": action, "payload": payload})


class TestBuildUpdatePatch:
    def test_only_seo_title(self):
        patch = build_update_patch(UpdateCategoryMetadata(category_name="Shoes", meta_title="New Title"))
        assert patch == {"meta_title": "New Title"}
        assert "description" not in patch

    def test_empty_description_is_an_explicit_overwrite(self):
        patch = build_update_patch(UpdateCategoryMetadata(category_name="Shoes", description=""))
        assert patch == {"description": ""}

    def test_blank_non_clearable_fields_are_dropped(self):
        action = UpdateCategoryMetadata(category_name="Shoes", name="  ", slug="", meta_description=" ")
        assert build_update_patch(action) == {}

    def test_values_are_trimmed_except_description(self):
        action = UpdateCategoryMetadata(category_name="Shoes", name=" Sneakers ", description=" kept as is ")
        assert build_update_patch(action) == {"name": "Sneakers", "description": " kept as is "}

    def test_nothing_requested(self):
        assert build_update_patch(UpdateCategoryMetadata(category_name="Shoes")) == {}


@pytest.mark.asyncio
class TestPlainAndList:
    async def test_plain_reply_is_echoed_without_backend_calls(self, directory, credentials):
        dispatcher = ActionDispatcher(directory)
        result = await dispatcher.dispatch("Bonjour, que puis-je faire ?", credentials)
        assert result.text == "Bonjour, que puis-je faire ?"
        assert result.action_name == "NONE"
        assert result.states == [DispatchState.IDLE, DispatchState.DISPATCHING, DispatchState.RESPONDED]
        directory.list_all.assert_not_awaited()

    async def test_list_categories(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(_reply("LIST_CATEGORIES"), credentials)
        assert result.text.splitlines()[-3:] == [" - Shoes", " - Shirts", " - Hats"]
        directory.list_all.assert_awaited_once_with(credentials)

    async def test_empty_catalog_says_so(self, directory, credentials):
        directory.list_all.return_value = []
        result = await ActionDispatcher(directory).dispatch(_reply("LIST_CATEGORIES"), credentials)
        assert result.text == replies.NO_CATEGORIES
        assert " - " not in result.text

    async def test_list_backend_down_apologises(self, directory, credentials):
        directory.list_all.side_effect = DirectoryConnectionError("down")
        result = await ActionDispatcher(directory).dispatch(_reply("LIST_CATEGORIES"), credentials)
        assert result.text == replies.CONNECTION_APOLOGY
        assert result.states[-1] == DispatchState.RESPONDED


@pytest.mark.asyncio
class TestGetMetadata:
    async def test_missing_name_asks_without_backend_call(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(_reply("GET_CATEGORY_METADATA"), credentials)
        assert result.text == replies.ASK_CATEGORY_NAME
        directory.list_all.assert_not_awaited()

    async def test_exact_match_lists_every_field(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("GET_CATEGORY_METADATA", categoryName="shoes"), credentials
        )
        assert '"Shoes"' in result.text
        assert "- Description : All our shoes" in result.text
        assert "- Slug : shoes" in result.text
        assert "- Titre SEO (Yoast) : Shoes | Shop" in result.text
        assert "- Méta description (Yoast) : Buy shoes online" in result.text
        assert "- Expression-clé principale (Yoast) : shoes" in result.text
        assert result.states == [
            DispatchState.IDLE,
            DispatchState.DISPATCHING,
            DispatchState.RESOLVING,
            DispatchState.EXECUTING,
            DispatchState.RESPONDED,
        ]

    async def test_missing_fields_get_placeholders(self, directory, credentials):
        directory.list_all.return_value = [Category(id=9, name="Bags")]
        result = await ActionDispatcher(directory).dispatch(
            _reply("GET_CATEGORY_METADATA", categoryName="Bags"), credentials
        )
        lines = result.text.splitlines()
        for label in ("Description", "Slug", "Titre SEO (Yoast)", "Méta description (Yoast)", "Expression-clé principale (Yoast)"):
            line = next(line for line in lines if line.startswith(f"- {label} :"))
            assert "Non défini" in line
            assert not line.rstrip().endswith(":")

    async def test_ambiguous_name_offers_suggestions(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("GET_CATEGORY_METADATA", categoryName="Shoe"), credentials
        )
        assert "Vouliez-vous dire" in result.text
        assert ' - "Shoes"' in result.text
        assert DispatchState.EXECUTING not in result.states

    async def test_unknown_name_not_found(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("GET_CATEGORY_METADATA", categoryName="Garden furniture"), credentials
        )
        assert result.text == replies.not_found("Garden furniture")

    async def test_backend_down_apologises(self, directory, credentials):
        directory.list_all.side_effect = DirectoryConnectionError("down")
        result = await ActionDispatcher(directory).dispatch(
            _reply("GET_CATEGORY_METADATA", categoryName="Shoes"), credentials
        )
        assert result.text == replies.CONNECTION_APOLOGY


@pytest.mark.asyncio
class TestUpdateMetadata:
    async def test_missing_name_asks(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", metaTitle="T"), credentials
        )
        assert result.text == replies.ASK_CATEGORY_NAME_UPDATE
        directory.list_all.assert_not_awaited()
        directory.update.assert_not_awaited()

    async def test_seo_title_only_patch(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoes", metaTitle="New Title"), credentials
        )
        directory.update.assert_awaited_once_with(credentials, 1, {"meta_title": "New Title"})
        assert result.text == replies.update_success("Shoes")

    async def test_empty_description_is_sent(self, directory, credentials):
        await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoes", description=""), credentials
        )
        directory.update.assert_awaited_once_with(credentials, 1, {"description": ""})

    async def test_rename_reports_new_name(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="hats", name="Caps"), credentials
        )
        directory.update.assert_awaited_once_with(credentials, 3, {"name": "Caps"})
        assert result.text == replies.update_success("Caps")

    async def test_empty_patch_never_calls_update(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoes", name="   "), credentials
        )
        assert result.text == replies.NOTHING_TO_CHANGE
        assert directory.update.await_count == 0

    async def test_update_error_is_reported_not_raised(self, directory, credentials):
        directory.update.side_effect = CategoryUpdateError(1, "rest_cannot_update", status_code=403)
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoes", slug="chaussures"), credentials
        )
        assert result.text == replies.update_failure("Shoes")
        assert directory.update.await_count == 1

    async def test_ambiguous_name_never_updates(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoe", metaTitle="T"), credentials
        )
        assert "à mettre à jour" in result.text
        assert ' - "Shoes"' in result.text
        directory.update.assert_not_awaited()

    async def test_unknown_name_never_updates(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("UPDATE_CATEGORY_METADATA", categoryName="Garden furniture", metaTitle="T"), credentials
        )
        assert result.text == replies.not_found("Garden furniture", for_update=True)
        directory.update.assert_not_awaited()

    async def test_repeated_update_is_idempotent(self, memory_directory, credentials):
        dispatcher = ActionDispatcher(memory_directory)
        raw = _reply("UPDATE_CATEGORY_METADATA", categoryName="Shoes", metaTitle="Shoes 2024", description="")

        first = await dispatcher.dispatch(raw, credentials)
        state_after_first = list(memory_directory.categories)
        second = await dispatcher.dispatch(raw, credentials)

        assert first.text == second.text == replies.update_success("Shoes")
        assert memory_directory.categories == state_after_first
        assert memory_directory.categories[0].seo.title == "Shoes 2024"
        assert memory_directory.categories[0].description == ""


@pytest.mark.asyncio
class TestCopyMetaDescription:
    async def test_missing_name_is_silent(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(_reply("COPY_YOAST_META_DESC_TO_DESC"), credentials)
        assert result.text is None
        assert result.states[-1] == DispatchState.RESPONDED
        directory.list_all.assert_not_awaited()

    async def test_copies_through_sparse_patch(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("COPY_YOAST_META_DESC_TO_DESC", categoryName="Shoes"), credentials
        )
        directory.update.assert_awaited_once_with(credentials, 1, {"description": "Buy shoes online"})
        assert result.text == replies.copy_success("Shoes")

    async def test_nothing_to_copy(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("COPY_YOAST_META_DESC_TO_DESC", categoryName="Shirts"), credentials
        )
        assert result.text == replies.nothing_to_copy("Shirts")
        directory.update.assert_not_awaited()

    async def test_ambiguous_name(self, directory, credentials):
        result = await ActionDispatcher(directory).dispatch(
            _reply("COPY_YOAST_META_DESC_TO_DESC", categoryName="Shoe"), credentials
        )
        assert "Vouliez-vous dire" in result.text
        directory.update.assert_not_awaited()

    async def test_copy_failure_is_reported(self, directory, credentials):
        directory.update.side_effect = CategoryUpdateError(1, "boom")
        result = await ActionDispatcher(directory).dispatch(
            _reply("COPY_YOAST_META_DESC_TO_DESC", categoryName="Shoes"), credentials
        )
        assert result.text == replies.update_failure("Shoes")

    async def test_copy_applies_to_stored_category(self, memory_directory, credentials):
        await ActionDispatcher(memory_directory).dispatch(
            _reply("COPY_YOAST_META_DESC_TO_DESC", categoryName="Shoes"), credentials
        )
        assert memory_directory.categories[0].description == "Buy shoes online"
        assert memory_directory.update_calls == [{"description": "Buy shoes online"}]
