"""
Unit tests for Discord bot integration and API interactions.
"""
import unittest
import asyncio
import inspect
from unittest.mock import Mock, AsyncMock
import discord

from winquizz.api_client import QuizApiClient, NetworkError
from winquizz.bot import (
    AnswerButtons, DiscordQuizView, QuizBot,
    build_completion_embed, build_question_embed, build_result_embed
)
from winquizz.config_manager import ConfigManager
from winquizz.data_manager import DataManager
from winquizz.models import Question, QuizSettings, ScoringRules
from winquizz.quiz_engine import QuizEngine
from tests.test_fixtures import MockDiscordObjects, TestFixtures


def create_session(count=3, **settings):
    engine = QuizEngine()
    session = engine.create_session(
        "test_quiz",
        TestFixtures.create_sample_questions(count),
        QuizSettings(**settings),
        channel_id=12345,
        owner_id=67890
    )
    engine.begin_session(session)
    return engine, session


def field_map(embed):
    return {field.name: field.value for field in embed.fields}


class TestEmbeds(unittest.TestCase):
    """Test embed rendering."""

    def test_question_embed(self):
        _, session = create_session()
        embed = build_question_embed(session)

        self.assertEqual(embed.title, "🎯 Question 1/3")
        self.assertEqual(embed.description, "What is 2+2?")
        fields = field_map(embed)
        self.assertIn("**B)** 4", fields["Options"])
        self.assertEqual(fields["⏱️ Time Remaining"], "15 seconds")
        self.assertEqual(fields["⏳ Quiz Time"], "0:45")
        self.assertEqual(fields["🏆 Score"], "0")
        self.assertNotIn("🔥 Streak", fields)

    def test_question_embed_low_time(self):
        _, session = create_session()
        session.question_seconds_remaining = 1
        fields = field_map(build_question_embed(session))
        self.assertEqual(fields["🚨 Time Remaining"], "1 second")

    def test_long_options_fit_embed_field(self):
        engine = QuizEngine()
        options = tuple(f"{letter} " + "x" * 500 for letter in "ABCDEFGHIJ")
        session = engine.create_session("wide", [Question("Pick one", options, 9)], channel_id=12345, owner_id=67890)
        engine.begin_session(session)

        fields = field_map(build_question_embed(session))
        self.assertLessEqual(len(fields["Options"]), 1024)
        self.assertIn("**J)** J xxx", fields["Options"])

        result = engine.submit_answer(session, 9)
        result_fields = field_map(build_result_embed(session, result, 1))
        self.assertLessEqual(len(result_fields["Correct Answer"]), 1024)

    def test_correct_result_embed(self):
        engine, session = create_session()
        result = engine.submit_answer(session, 1)

        embed = build_result_embed(session, result, 1)

        self.assertEqual(embed.title, "✅ Correct! - Question 1/3")
        fields = field_map(embed)
        self.assertEqual(fields["Correct Answer"], "**B) 4**")
        self.assertEqual(fields["Points"], "Correct Answer: +20\nTime Bonus: +15")
        self.assertEqual(fields["💡 Explanation"], "Basic addition.")

    def test_timeout_result_embed(self):
        engine, session = create_session()
        result = engine.skip_question(session, timed_out=True)

        embed = build_result_embed(session, result, 1)

        self.assertTrue(embed.title.startswith("⏰ Time's Up!"))
        self.assertEqual(field_map(embed)["Points"], "Time's Up: -2 points")

    def test_completion_embed(self):
        summary = {
            'quiz_name': "test_quiz",
            'final_score': 85,
            'correct_answers': 3,
            'total_questions': 3,
            'questions_answered': 3,
            'best_streak': 3,
            'total_time': 75,
            'completion_reason': "time_up",
        }
        embed = build_completion_embed(summary)

        self.assertEqual(embed.title, "⏰ Time's Up!")
        stats = field_map(embed)["📊 Final Stats"]
        self.assertIn("Final Score: **85**", stats)
        self.assertIn("Time Taken: 1:15", stats)

        summary['completion_reason'] = "finished"
        self.assertEqual(build_completion_embed(summary).title, "🎉 Quiz Completed!")


class TestDiscordQuizView(unittest.TestCase):
    """Test the channel renderer and answer buttons."""

    def setUp(self):
        self.controller = Mock()
        self.controller.submit_answer = AsyncMock(return_value={'success': True})
        self.controller.skip_question = AsyncMock(return_value={'success': True})

    async def test_answer_buttons(self):
        _, session = create_session()
        buttons = AnswerButtons(self.controller, session)

        self.assertEqual(len(buttons.children), 5)
        self.assertEqual(buttons.children[1].label, "B) 4")
        self.assertEqual(buttons.children[-1].label, "Skip")

        interaction = MockDiscordObjects.create_mock_interaction()
        await buttons.children[1].callback(interaction)

        interaction.response.defer.assert_awaited_once()
        self.controller.submit_answer.assert_awaited_once_with(12345, 67890, 1, question_index=0)
        interaction.followup.send.assert_not_called()

    async def test_ten_option_buttons(self):
        engine = QuizEngine()
        options = tuple(f"Option {i}" for i in range(10))
        session = engine.create_session("wide", [Question("Pick one", options, 9)], channel_id=12345, owner_id=67890)
        engine.begin_session(session)

        buttons = AnswerButtons(self.controller, session)

        self.assertEqual(len(buttons.children), 11)
        self.assertEqual(buttons.children[9].label, "J) Option 9")

    async def test_skip_button(self):
        _, session = create_session()
        buttons = AnswerButtons(self.controller, session)

        interaction = MockDiscordObjects.create_mock_interaction()
        await buttons.children[-1].callback(interaction)

        self.controller.skip_question.assert_awaited_once_with(12345, 67890, question_index=0)

    async def test_rejected_answer_is_ephemeral(self):
        _, session = create_session()
        self.controller.submit_answer.return_value = {
            'success': False,
            'message': "not owner",
            'user_message': "❌ Only the player who started this quiz can do that."
        }
        buttons = AnswerButtons(self.controller, session)

        interaction = MockDiscordObjects.create_mock_interaction(user_id=999)
        await buttons.children[0].callback(interaction)

        interaction.followup.send.assert_awaited_once_with(
            "❌ Only the player who started this quiz can do that.", ephemeral=True
        )

    async def test_show_question_and_result(self):
        engine, session = create_session()
        channel = MockDiscordObjects.create_mock_channel()
        view = DiscordQuizView(channel, self.controller)

        await view.show_question(session)

        channel.send.assert_awaited_once()
        kwargs = channel.send.call_args[1]
        self.assertEqual(kwargs['embed'].title, "🎯 Question 1/3")
        self.assertIs(kwargs['view'], view.buttons)

        result = engine.submit_answer(session, 0)
        await view.show_result(session, result)

        view.message.edit.assert_awaited_once()
        self.assertTrue(view.message.edit.call_args[1]['embed'].title.startswith("❌ Wrong Answer"))
        self.assertTrue(all(item.disabled for item in view.buttons.children))
        self.assertTrue(view.buttons.is_finished())

    async def test_show_tick_throttles_edits(self):
        _, session = create_session()
        view = DiscordQuizView(MockDiscordObjects.create_mock_channel(), self.controller)
        await view.show_question(session)

        for remaining in (14, 12, 10, 7, 5, 4):
            session.question_seconds_remaining = remaining
            await view.show_tick(session)

        # 10 (multiple of 5), 5 and 4 (final countdown)
        self.assertEqual(view.message.edit.await_count, 3)

        session.answered = True
        await view.show_tick(session)
        self.assertEqual(view.message.edit.await_count, 3)

    async def test_show_completion(self):
        _, session = create_session()
        channel = MockDiscordObjects.create_mock_channel()
        view = DiscordQuizView(channel, self.controller)
        await view.show_question(session)

        summary = {
            'quiz_name': "test_quiz", 'final_score': 0, 'correct_answers': 0,
            'total_questions': 3, 'questions_answered': 0, 'best_streak': 0,
            'total_time': 45, 'completion_reason': "time_up"
        }
        await view.show_completion(session, summary)

        self.assertTrue(all(item.disabled for item in view.buttons.children))
        self.assertEqual(channel.send.call_args[1]['embed'].title, "⏰ Time's Up!")


class TestDiscordBotIntegration(unittest.TestCase):
    """Test Discord bot command handlers with mocked Discord API."""

    async def async_setUp(self):
        """Async setup for bot testing."""
        self.bot = QuizBot()
        self.bot.config_manager = ConfigManager()
        self.bot.data_manager = DataManager("./unused/", include_demo_quizzes=False)
        self.bot.data_manager.register_quiz(TestFixtures.create_sample_quiz("test_quiz", count=3))
        self.bot.api_client = QuizApiClient()

        self.bot.quiz_controller = Mock()
        self.bot.quiz_controller.start_quiz = AsyncMock(return_value={
            'success': True,
            'message': "Started quiz 'test_quiz' with 3 questions.",
            'session_info': {
                'quiz_name': 'test_quiz',
                'total_questions': 3,
                'current_question': 1,
                'score': 0,
                'total_seconds_remaining': 45,
                'settings': {'question_count': None, 'random_order': False, 'timer_duration': 15}
            }
        })
        self.bot.quiz_controller.stop_quiz = AsyncMock(return_value={
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': {'quiz_name': 'test_quiz', 'current_question': 2, 'total_questions': 3, 'score': 35}
        })
        self.bot.quiz_controller.skip_question = AsyncMock(return_value={
            'success': True, 'message': "Question skipped: -2 points"
        })
        self.bot.quiz_controller.get_session_status_summary.return_value = "Quiz: test_quiz | Progress: 1/3"

    async def test_help_command_success(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_help(interaction)

        interaction.response.send_message.assert_called_once()
        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.title, "🎯 WinQuizz Commands")
        self.assertIn("Quiz Settings:", field_map(embed)["⚙️ Current Settings"])

    async def test_help_command_with_discord_error(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()
        interaction.response.send_message.side_effect = discord.HTTPException(Mock(), "API Error")

        # Should handle error gracefully
        await self.bot.handle_help(interaction)

        # Original attempt plus the error response
        self.assertEqual(interaction.response.send_message.call_count, 2)

    async def test_quizzes_command(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_quizzes(interaction)

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertIn("`test_quiz` - Test Quiz (3 questions)", embed.description)

    async def test_start_command_success(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_start(interaction, "test_quiz")

        interaction.response.defer.assert_awaited_once()
        args = self.bot.quiz_controller.start_quiz.call_args[0]
        self.assertEqual(args[:3], (12345, 67890, "test_quiz"))
        self.assertIsInstance(args[3], DiscordQuizView)

        embed = interaction.followup.send.call_args[1]['embed']
        self.assertEqual(embed.title, "🎯 Quiz Started!")
        self.assertIn("Total time: 0:45", field_map(embed)["📊 Quiz Details"])

    async def test_start_command_defaults_to_first_quiz(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_start(interaction)

        self.assertEqual(self.bot.quiz_controller.start_quiz.call_args[0][2], "test_quiz")

    async def test_start_command_no_quizzes_available(self):
        await self.async_setUp()
        self.bot.data_manager = DataManager("./unused/", include_demo_quizzes=False)
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_start(interaction, "test_quiz")

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.title, "❌ No Quizzes Available")
        self.bot.quiz_controller.start_quiz.assert_not_called()

    async def test_start_command_failure(self):
        await self.async_setUp()
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': False,
            'message': "conflict",
            'user_message': "❌ A quiz is already running in this channel. Please stop it first with `/stop`."
        }
        interaction = MockDiscordObjects.create_mock_interaction()
        interaction.response.is_done.return_value = True

        await self.bot.handle_start(interaction, "test_quiz")

        kwargs = interaction.followup.send.call_args[1]
        self.assertTrue(kwargs['ephemeral'])
        self.assertEqual(kwargs['embed'].title, "❌ Quiz Start Failed")

    async def test_skip_command(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_skip(interaction)

        self.bot.quiz_controller.skip_question.assert_awaited_once_with(12345, 67890)
        interaction.followup.send.assert_awaited_once_with("⏭️ Question skipped: -2 points", ephemeral=True)

    async def test_stop_command_success(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_stop(interaction)

        self.bot.quiz_controller.stop_quiz.assert_awaited_once_with(12345, 67890)
        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.title, "🛑 Quiz Stopped")
        self.assertIn("Score: 35", field_map(embed)["📊 Progress"])

    async def test_stop_command_without_session(self):
        await self.async_setUp()
        self.bot.quiz_controller.stop_quiz.return_value = {
            'success': False,
            'message': "No active quiz to stop in this channel",
            'user_message': "ℹ️ No active quiz found in this channel"
        }
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_stop(interaction)

        interaction.response.send_message.assert_awaited_once_with(
            "ℹ️ No active quiz found in this channel", ephemeral=True
        )

    async def test_status_command(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_status(interaction)

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.description, "Quiz: test_quiz | Progress: 1/3")

    async def test_set_timer_command(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_set_timer(interaction, 30)

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.description, "✅ Timer set to 30 seconds")
        self.assertEqual(self.bot.config_manager.get_timer_duration(), 30)

    async def test_set_timer_validation_error(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_set_timer(interaction, 2)

        interaction.response.send_message.assert_awaited_once_with(
            "❌ Timer duration too low: Minimum is 5 seconds", ephemeral=True
        )
        self.assertEqual(self.bot.config_manager.get_timer_duration(), 15)

    async def test_set_questions_and_random_order(self):
        await self.async_setUp()

        await self.bot.handle_set_questions(MockDiscordObjects.create_mock_interaction(), 2)
        await self.bot.handle_random_order(MockDiscordObjects.create_mock_interaction())

        self.assertEqual(self.bot.config_manager.get_question_count(), 2)
        self.assertTrue(self.bot.config_manager.get_random_order())

    async def test_fetch_quiz_backend_disabled(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_fetch_quiz(interaction, "abc")

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.title, "❌ Backend Disabled")

    async def test_fetch_quiz_success(self):
        await self.async_setUp()
        self.bot.api_client = Mock(spec=QuizApiClient)
        self.bot.api_client.enabled = True
        self.bot.api_client.fetch_quiz = AsyncMock(return_value=TestFixtures.create_valid_quiz_json())
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_fetch_quiz(interaction, "abc")

        self.assertTrue(self.bot.data_manager.quiz_exists("remote-abc"))
        message = interaction.followup.send.call_args[0][0]
        self.assertIn("`/start quiz_name:remote-abc`", message)

    async def test_fetch_quiz_backend_error(self):
        await self.async_setUp()
        self.bot.api_client = Mock(spec=QuizApiClient)
        self.bot.api_client.enabled = True
        self.bot.api_client.fetch_quiz = AsyncMock(side_effect=NetworkError("unreachable"))
        interaction = MockDiscordObjects.create_mock_interaction()
        interaction.response.is_done.return_value = True

        await self.bot.handle_fetch_quiz(interaction, "abc")

        self.assertEqual(interaction.followup.send.call_args[1]['embed'].title, "❌ Fetch Failed")
        self.assertFalse(self.bot.data_manager.quiz_exists("remote-abc"))

    async def test_leaderboard(self):
        await self.async_setUp()
        self.bot.api_client = Mock(spec=QuizApiClient)
        self.bot.api_client.enabled = True
        self.bot.api_client.fetch_leaderboard = AsyncMock(return_value=[
            {'rank': 1, 'username': 'asha', 'score': 120, 'prize': '₹500'},
            {'rank': 2, 'username': 'ravi', 'score': 95},
        ])
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_leaderboard(interaction, "weekly")

        embed = interaction.followup.send.call_args[1]['embed']
        self.assertEqual(embed.description, "**#1** asha - 120 (₹500)\n**#2** ravi - 95")

    async def test_discord_api_error_handling(self):
        await self.async_setUp()
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.bot.handle_discord_api_error(discord.Forbidden(Mock(), "Missing Access"), "test", interaction)

        embed = interaction.response.send_message.call_args[1]['embed']
        self.assertEqual(embed.title, "❌ Permission Error")

    async def test_command_setup_and_registration(self):
        await self.async_setUp()

        self.bot.setup_commands()

        registered_commands = {command.name for command in self.bot.tree.get_commands()}
        expected_commands = {
            'help', 'quizzes', 'start', 'skip', 'stop', 'status',
            'set_questions', 'set_timer', 'random_order', 'fetch_quiz', 'leaderboard'
        }
        self.assertEqual(registered_commands, expected_commands)

    async def test_apply_configuration(self):
        self.bot = QuizBot({
            'quiz': {
                'quiz_directory': './quizzes/',
                'default_question_count': 10,
                'default_timer_duration': 1,
                'session_duration': 120,
                'answer_reveal_delay': 1,
                'skip_reveal_delay': 1
            },
            'scoring': {'base_points': 25, 'streak_bonuses': [[2, 5]]},
            'api': {'base_url': "https://quiz.example.com", 'token': "secret"}
        })
        self.bot.config_manager = ConfigManager()

        self.bot.apply_configuration()

        settings = self.bot.config_manager.get_quiz_settings()
        self.assertEqual(settings.question_count, 10)
        self.assertEqual(settings.session_duration, 120)
        # Out-of-range timer keeps the default
        self.assertEqual(settings.timer_duration, 15)
        self.assertEqual(
            self.bot.config_manager.get_scoring_rules(),
            ScoringRules(base_points=25, streak_bonuses=((2, 5),))
        )
        self.assertEqual(self.bot.config_manager.get_api_settings()['base_url'], "https://quiz.example.com")


def async_test(coro):
    """Decorator to run async test methods."""
    def wrapper(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(coro(self))
        finally:
            loop.close()
    return wrapper


# Apply async_test decorator to async test methods
for _case in (TestDiscordQuizView, TestDiscordBotIntegration):
    for _name in [n for n in vars(_case) if n.startswith('test_')]:
        if inspect.iscoroutinefunction(getattr(_case, _name)):
            setattr(_case, _name, async_test(getattr(_case, _name)))


if __name__ == '__main__':
    unittest.main()
