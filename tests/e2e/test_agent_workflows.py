"""End-to-end workflows: a scripted model driving the real built-in tools."""

import pytest

from codeloop.agent import EventType, Session, SessionConfig
from codeloop.config.settings import ShellConfig
from codeloop.models.types import MessageRole, ToolCall
from codeloop.tools import default_tool_registry


def _call(call_id, tool_name, **input):
    return ToolCall(id=call_id, tool_name=tool_name, input=input)


async def _run(session, message):
    return [event async for event in session.run(message)]


def _results(events):
    return [e.tool_result for e in events if e.type == EventType.TOOL_RESULT]


class TestCodingWorkflow:
    """A model writes, edits, searches and runs code in a project."""

    @pytest.mark.asyncio
    async def test_write_edit_run(self, scripted_client, response_factory, project_dir):
        client = scripted_client([
            response_factory("I'll create the script.", tool_calls=[
                _call("c1", "write_file", file_path="app/hello.py", content="print('hello')"),
            ]),
            response_factory(tool_calls=[
                _call("c2", "edit_file", file_path="app/hello.py",
                      old_text="hello", new_text="goodbye"),
                _call("c3", "bash", command="grep -o goodbye app/hello.py"),
            ]),
            response_factory(tool_calls=[
                _call("c4", "search_files", pattern="goodbye", file_paths="app/*.py"),
                _call("c5", "glob_files", pattern="*.py"),
            ]),
            response_factory("Done: the script prints goodbye."),
        ])
        session = Session(client, default_tool_registry(str(project_dir)))

        events = await _run(session, "Create a script that says goodbye")

        results = _results(events)
        assert [r.tool_name for r in results] == [
            "write_file", "edit_file", "bash", "search_files", "glob_files",
        ]
        assert all(not r.failed for r in results)
        assert (project_dir / "app" / "hello.py").read_text() == "print('goodbye')\n"
        assert results[1].output.replacements == 1
        assert results[2].output.stdout == "goodbye\n"
        assert results[3].output.matches[0].line == 1
        assert results[4].output.files == [str(project_dir / "app" / "hello.py")]

        assert events[-2].type == EventType.RESPONSE_COMPLETE
        assert events[-1].usage.total_tokens == 60
        tool_messages = [m for m in session.history if m.role == MessageRole.TOOL]
        assert [m.tool_call_id for m in tool_messages] == ["c1", "c2", "c3", "c4", "c5"]

    @pytest.mark.asyncio
    async def test_model_recovers_from_failures(
        self, scripted_client, response_factory, project_dir
    ):
        client = scripted_client([
            response_factory(tool_calls=[
                _call("c1", "read_file", file_path="missing.txt"),
                _call("c2", "edit_file", file_path="missing.txt", old_text="a", new_text="b"),
                _call("c3", "bash", command="rm -rf / --no-preserve-root"),
            ]),
            response_factory("Nothing to do: the file does not exist."),
        ])
        session = Session(client, default_tool_registry(str(project_dir)))

        events = await _run(session, "Fix missing.txt")

        results = _results(events)
        assert all(r.failed for r in results)
        assert results[0].output.error == "File does not exist"
        assert results[1].error.parameter == "file_path"
        assert results[2].error.code == "COMMAND_BLOCKED"
        assert events[-2].response.content.startswith("Nothing to do")
        # Every failure went back to the model
        second_query = client.calls[1]["messages"]
        assert [m.role for m in second_query[-3:]] == [MessageRole.TOOL] * 3


class TestShellLimits:
    """Shell configuration flows from settings into the session's tools."""

    @pytest.mark.asyncio
    async def test_timeout_reported_to_model(
        self, scripted_client, response_factory, project_dir
    ):
        options = ShellConfig(default_timeout=0.5).to_tool_options()
        client = scripted_client([
            response_factory(tool_calls=[_call("c1", "bash", command="sleep 30")]),
            response_factory("The command timed out."),
        ])
        session = Session(client, default_tool_registry(str(project_dir), options))

        events = await _run(session, "wait a while")

        result = _results(events)[0]
        assert result.output.interrupted is True
        assert "timed out" in result.output.stderr

    @pytest.mark.asyncio
    async def test_read_only_session(self, scripted_client, response_factory, project_dir):
        registry = default_tool_registry(str(project_dir))
        read_only = [tool.name for tool in registry.get_read_only_tools()]
        client = scripted_client([response_factory("ok")])
        session = Session(
            client,
            registry,
            SessionConfig(stream=True),
            tool_names=read_only,
        )

        events = await _run(session, "look around")

        offered = [tool.name for tool in client.calls[0]["tools"]]
        assert offered == ["read_file", "list_directory", "search_files", "glob_files", "think"]
        assert events[0].content == "ok"
