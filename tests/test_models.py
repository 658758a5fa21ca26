from jiradash.models import Issue, Transition, adf_to_text, priority_rank, text_to_adf


def test_issue_from_search_payload() -> None:
    issue = Issue.from_payload(
        {
            "key": "ABC-1",
            "fields": {
                "summary": "Fix login",
                "status": {"name": "In Progress"},
                "priority": {"name": "High"},
                "issuetype": {"name": "Bug"},
                "project": {"key": "ABC", "name": "Alpha"},
                "assignee": {"displayName": "Sam Lee"},
                "customfield_10020": [
                    {"id": 3, "name": "Sprint 3", "state": "closed"},
                    {"id": 4, "name": "Sprint 4", "state": "active"},
                ],
                "updated": "2026-01-01T10:00:00.000+0000",
            },
        }
    )

    assert issue.status == "In Progress"
    assert issue.assignee_name == "Sam Lee"
    assert issue.project_name() == "Alpha"
    assert issue.sprint_id == 4


def test_missing_fields_fall_back_to_empty_values() -> None:
    issue = Issue.from_payload({"key": "ABC-2", "fields": {"assignee": None, "priority": None}})

    assert issue.summary == ""
    assert issue.priority == ""
    assert issue.assignee is None
    assert issue.assignee_name == "Unassigned"
    assert issue.sprint_id is None
    assert issue.comments() == []
    assert issue.time_tracking() == {}


def test_comments_and_time_tracking_read_raw_fields() -> None:
    issue = Issue.from_payload(
        {
            "key": "ABC-3",
            "fields": {
                "comment": {
                    "comments": [
                        {"author": {"displayName": "Ana"}, "created": "2026-01-02", "body": text_to_adf("hi\nthere")},
                    ]
                },
                "timetracking": {"timeSpent": "3h", "remainingEstimate": "1h"},
            },
        }
    )

    [comment] = issue.comments()
    assert comment.author == "Ana"
    assert comment.body == "hi\nthere"
    assert issue.time_tracking() == {"Spent": "3h", "Remaining": "1h"}


def test_adf_to_text_flattens_nested_nodes() -> None:
    doc = {
        "type": "doc",
        "content": [
            {"type": "heading", "content": [{"type": "text", "text": "Steps"}]},
            {
                "type": "bulletList",
                "content": [
                    {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "open"}]}]},
                    {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "save"}]}]},
                ],
            },
            {
                "type": "paragraph",
                "content": [
                    {"type": "mention", "attrs": {"text": "@sam"}},
                    {"type": "text", "text": " see above"},
                    {"type": "hardBreak"},
                    {"type": "text", "text": "thanks"},
                ],
            },
        ],
    }

    assert adf_to_text(doc) == "Steps\n- open\n- save\n@sam see above\nthanks"
    assert adf_to_text("already plain") == "already plain"
    assert adf_to_text(None) == ""


def test_text_to_adf_keeps_blank_lines_as_empty_paragraphs() -> None:
    doc = text_to_adf("one\n\ntwo")

    assert doc["type"] == "doc"
    assert [p["content"] for p in doc["content"]][1] == []
    assert adf_to_text(doc) == "one\n\ntwo"


def test_priority_rank_puts_unknown_last() -> None:
    assert priority_rank("Highest") < priority_rank("Low") < priority_rank("Blocker")


def test_transition_from_payload() -> None:
    transition = Transition.from_payload({"id": 31, "name": "Close", "to": {"name": "Done"}})

    assert transition == Transition("31", "Close", "Done")
