import asyncio

import pytest
from starlette.datastructures import FormData

from editor import (
    BlogPostEditor,
    FormValidationError,
    ProjectEditor,
    SkillEditor,
    SubmissionInProgress,
    slugify,
)
from repository import ConflictError


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello World", "hello-world"),
        ("  Quantum -- Computing!! ", "quantum-computing"),
        ("snake_case title", "snake-case-title"),
        ("Ünïcode & symbols", "unicode-symbols"),
        ("Café Résumé", "cafe-resume"),
        ("", ""),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


@pytest.mark.parametrize("text", ["Hello World", "--a__b--", "CubeSat v2.0 (final)", "x"])
def test_slugify_is_idempotent(text):
    once = slugify(text)
    assert slugify(once) == once


def filled_editor(**values):
    editor = ProjectEditor.blank()
    editor.set_title("Alpha Rover")
    editor.set_field("description", "A rover")
    for name, value in values.items():
        editor.set_field(name, value)
    return editor


def test_title_drives_slug_until_slug_edited():
    editor = ProjectEditor.blank()
    editor.set_title("Alpha Rover")
    assert editor.values["slug"] == "alpha-rover"
    editor.set_field("slug", "custom-slug")
    editor.set_title("Something Else")
    assert editor.values["slug"] == "custom-slug"
    assert editor.generate_slug() == "custom-slug"
    assert editor.generate_slug(force=True) == "something-else"


def test_existing_entity_keeps_its_slug():
    editor = ProjectEditor.from_entity({"id": 4, "title": "Old", "slug": "old-slug", "description": "d"})
    editor.set_title("New title")
    assert editor.values["slug"] == "old-slug"
    assert not editor.is_new


def test_ongoing_toggle_clears_end_date_and_sets_status():
    editor = filled_editor(end_date="2024-01-01", status="planned")
    editor.set_field("is_ongoing", True)
    payload = editor.to_payload()
    assert "end_date" not in payload
    assert payload["status"] == "in-progress"
    assert payload["is_ongoing"] is True


def test_end_date_ignored_while_ongoing():
    editor = filled_editor(is_ongoing=True)
    editor.set_field("end_date", "2025-01-01")
    assert editor.values.get("end_date") is None


def test_leaving_ongoing_marks_completed():
    editor = filled_editor(is_ongoing=True)
    editor.set_field("is_ongoing", False)
    assert editor.values["status"] == "completed"


def test_dates_are_iso_and_cleared_dates_omitted():
    editor = filled_editor(start_date="2024-02-03", end_date="")
    payload = editor.to_payload()
    assert payload["start_date"] == "2024-02-03"
    assert "end_date" not in payload


def test_invalid_values_are_reported_per_field():
    editor = ProjectEditor.blank()
    editor.set_field("completion", "120")
    editor.set_field("team_size", "zero")
    editor.set_field("start_date", "03/02/2024")
    errors = editor.validate()
    assert errors["title"] == "Title is required"
    assert errors["completion"] == "Completion must be between 0 and 100"
    assert errors["team_size"] == "Team size must be a whole number"
    assert "start_date" in errors


def test_bad_slug_is_rejected():
    editor = filled_editor(slug="Not A Slug")
    assert "slug" in editor.validate()


def test_child_collections():
    editor = filled_editor()
    assert editor.add_child("technologies", "Python")
    assert not editor.add_child("technologies", "Python")
    assert not editor.add_child("technologies", "   ")
    assert editor.add_child("milestones", {"description": "Chassis", "due_date": "2024-04-01"})
    assert not editor.add_child("milestones", {"description": ""})
    assert editor.add_child("resources", {"name": "Docs", "url": "https://example.com"})
    editor.update_child("milestones", 0, completed=True)
    editor.update_child("technologies", 0, " Python 3 ")

    payload = editor.to_payload()
    assert payload["technologies"] == ["Python 3"]
    assert payload["milestones"] == [{"description": "Chassis", "due_date": "2024-04-01", "completed": True}]
    assert payload["resources"] == [{"name": "Docs", "url": "https://example.com"}]

    editor.remove_child("resources", 0)
    assert editor.to_payload()["resources"] == []


def test_child_errors_are_keyed_by_position():
    editor = filled_editor()
    editor.children["challenges"].append({"description": "", "solution": "x"})
    assert editor.validate() == {"challenges.0.description": "Description is required"}


def test_from_form_reads_child_rows_and_drops_blank_rows():
    form = FormData([
        ("title", "Form Project"),
        ("description", "From a form"),
        ("completion", "30"),
        ("priority", "low"),
        ("technologies", "Python\nFastAPI\n\nPython"),
        ("milestones-0-description", "First"),
        ("milestones-0-due_date", "2024-05-01"),
        ("milestones-0-completed", "on"),
        ("milestones-1-description", ""),
        ("milestones-1-due_date", ""),
        ("is_featured", "on"),
    ])
    editor = ProjectEditor.from_form(form)
    assert editor.values["slug"] == "form-project"
    payload = editor.to_payload()
    assert payload["technologies"] == ["Python", "FastAPI"]
    assert payload["milestones"] == [{"description": "First", "due_date": "2024-05-01", "completed": True}]
    assert payload["is_featured"] is True
    assert payload["is_ongoing"] is False
    assert editor.validate() == {}


def test_from_form_unchecking_ongoing():
    form = FormData([
        ("title", "P"), ("slug", "p"), ("slug_manual", "1"), ("description", "d"),
        ("status", "in-progress"), ("was_ongoing", "1"),
    ])
    editor = ProjectEditor.from_form(form, entity_id=3)
    assert not editor.is_ongoing
    assert editor.values["status"] == "completed"


def test_research_editor_targets_research_listing():
    editor = ProjectEditor.blank(kind="research")
    assert editor.noun == "research project"
    assert editor.listing_url == "/admin/research-projects"


def test_submit_success_redirects_and_runs_hook():
    editor = filled_editor()
    saved, hooked = [], []

    def persist(payload):
        saved.append(payload)
        return {"id": 1, **payload}

    result = asyncio.run(editor.submit(persist, on_success=hooked.append))
    assert result.ok
    assert result.redirect_to == "/admin/projects"
    assert saved[0]["slug"] == "alpha-rover"
    assert hooked == [result.entity]
    assert editor.notification == "Project created successfully"
    assert not editor.is_submitting


def test_submit_accepts_async_persist():
    editor = BlogPostEditor.blank()
    editor.set_title("Hello")
    editor.set_field("excerpt", "e")
    editor.set_field("content", "c")

    async def persist(payload):
        return payload

    result = asyncio.run(editor.submit(persist))
    assert result.ok
    assert result.entity["slug"] == "hello"
    assert result.redirect_to == "/admin/blog"


def test_blog_tags_are_edited_as_a_list():
    editor = BlogPostEditor.from_entity({
        "id": 3, "title": "Hello", "slug": "hello", "excerpt": "e", "content": "c",
        "tags": ["Python", "Quantum"],
    })
    assert editor.children["tags"] == ["Python", "Quantum"]
    assert not editor.add_child("tags", "Python")
    assert editor.add_child("tags", "Rust")
    editor.remove_child("tags", 0)
    assert editor.to_payload()["tags"] == ["Quantum", "Rust"]


def test_submit_validation_error_does_not_persist():
    editor = ProjectEditor.blank()
    calls = []
    with pytest.raises(FormValidationError) as exc:
        asyncio.run(editor.submit(calls.append))
    assert "title" in exc.value.errors
    assert calls == []


def test_submit_failure_keeps_edits():
    editor = filled_editor(category="Robotics")

    def persist(payload):
        raise RuntimeError("database is down")

    result = asyncio.run(editor.submit(persist))
    assert not result.ok
    assert editor.notification == "Failed to create project"
    assert editor.values["category"] == "Robotics"
    assert not editor.is_submitting


def test_submit_conflict_flags_slug():
    editor = filled_editor()

    def persist(payload):
        raise ConflictError("duplicate")

    result = asyncio.run(editor.submit(persist))
    assert not result.ok
    assert editor.errors == {"slug": "Slug is already in use"}


def test_second_submit_while_saving_is_rejected():
    editor = filled_editor()

    async def scenario():
        release = asyncio.Event()
        calls = []

        async def persist(payload):
            calls.append(payload)
            await release.wait()
            return payload

        first = asyncio.ensure_future(editor.submit(persist))
        await asyncio.sleep(0)
        assert editor.is_submitting
        with pytest.raises(SubmissionInProgress):
            await editor.submit(persist)
        release.set()
        result = await first
        return result, calls

    result, calls = asyncio.run(scenario())
    assert result.ok
    assert len(calls) == 1


def test_skill_editor_has_no_slug():
    editor = SkillEditor.blank()
    editor.set_field("name", "Python")
    editor.set_field("category", "Languages")
    editor.set_field("proficiency", "11")
    assert editor.validate() == {"proficiency": "Proficiency must be between 0 and 10"}
    editor.set_field("proficiency", "9")
    assert editor.to_payload() == {
        "name": "Python", "category": "Languages", "proficiency": 9,
        "is_featured": False, "order_index": 0,
    }
