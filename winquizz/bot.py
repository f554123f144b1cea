import discord
from discord.ext import commands
import logging
from typing import Any, Dict, Optional
import os
from pathlib import Path

from .api_client import QuizApiClient, QuizApiError
from .config_manager import ConfigManager
from .data_manager import DataManager, QuizFormatError
from .models import MAX_OPTIONS, AnswerResult, Correct, Incorrect, QuizSession, Skipped
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)

OPTION_LABELS = "ABCDEFGHIJ"
OPTION_TEXT_LIMIT = 80  # button label cap; ten options stay under the 1024 character field limit


def _clip(text: str, limit: int = OPTION_TEXT_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def _format_seconds(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"


def build_question_embed(session: QuizSession) -> discord.Embed:
    """Render the current question with both clocks and the running score."""
    question = session.current_question
    remaining = session.question_seconds_remaining
    embed = discord.Embed(
        title=f"🎯 Question {session.current_index + 1}/{len(session.questions)}",
        description=question.text,
        color=0x00ff00 if remaining > 5 else 0xff6600 if remaining > 2 else 0xff0000
    )

    options_text = "\n".join(
        f"**{OPTION_LABELS[i]})** {_clip(option)}" for i, option in enumerate(question.options)
    )
    embed.add_field(name="Options", value=options_text, inline=False)

    timer_emoji = "⏱️" if remaining > 5 else "⚠️" if remaining > 2 else "🚨"
    embed.add_field(
        name=f"{timer_emoji} Time Remaining",
        value=f"{remaining} second{'s' if remaining != 1 else ''}",
        inline=True
    )
    embed.add_field(name="⏳ Quiz Time", value=_format_seconds(session.total_seconds_remaining), inline=True)
    embed.add_field(name="🏆 Score", value=str(session.score), inline=True)

    if session.streak >= 3:
        embed.add_field(name="🔥 Streak", value=f"{session.streak} in a row", inline=True)

    embed.set_footer(text=f"{session.quiz_name} • Faster answers earn more points")
    return embed


def build_result_embed(session: QuizSession, result: AnswerResult, question_number: int) -> discord.Embed:
    """Render the evaluation of a question."""
    question = session.questions[question_number - 1]

    if isinstance(result, Correct):
        title, color = "✅ Correct!", 0x00ff00
    elif isinstance(result, Incorrect):
        title, color = "❌ Wrong Answer", 0xff0000
    elif isinstance(result, Skipped) and result.timed_out:
        title, color = "⏰ Time's Up!", 0xff6600
    else:
        title, color = "⏭️ Skipped", 0xffaa00

    embed = discord.Embed(
        title=f"{title} - Question {question_number}/{len(session.questions)}",
        description=question.text,
        color=color
    )
    embed.add_field(
        name="Correct Answer",
        value=f"**{OPTION_LABELS[result.correct_index]}) {_clip(question.options[result.correct_index])}**",
        inline=False
    )
    embed.add_field(name="Points", value="\n".join(result.breakdown) or str(result.points), inline=True)
    embed.add_field(name="🏆 Score", value=str(session.score), inline=True)

    if result.explanation:
        embed.add_field(name="💡 Explanation", value=result.explanation, inline=False)

    return embed


def build_completion_embed(summary: Dict[str, Any]) -> discord.Embed:
    """Render the final summary of a session."""
    time_up = summary['completion_reason'] == 'time_up'
    embed = discord.Embed(
        title="⏰ Time's Up!" if time_up else "🎉 Quiz Completed!",
        description=f"**{summary['quiz_name']}** is over",
        color=0xff6600 if time_up else 0x00ff00
    )
    embed.add_field(
        name="📊 Final Stats",
        value=(
            f"Final Score: **{summary['final_score']}**\n"
            f"Correct Answers: {summary['correct_answers']}/{summary['total_questions']}\n"
            f"Questions Answered: {summary['questions_answered']}\n"
            f"Best Streak: {summary['best_streak']}\n"
            f"Time Taken: {_format_seconds(summary['total_time'])}"
        ),
        inline=False
    )
    embed.set_footer(text="Thanks for playing! Use /start to begin a new quiz.")
    return embed


class AnswerButtons(discord.ui.View):
    """One button per option plus a skip button, bound to a single question."""

    def __init__(self, controller: QuizController, session: QuizSession):
        super().__init__(timeout=None)
        self.controller = controller
        self.channel_id = session.channel_id
        self.question_index = session.current_index

        question = session.current_question
        for index, option in enumerate(question.options[:MAX_OPTIONS]):
            button = discord.ui.Button(
                label=_clip(f"{OPTION_LABELS[index]}) {option}"),
                style=discord.ButtonStyle.primary,
                row=index // 5
            )
            button.callback = self._make_answer_callback(index)
            self.add_item(button)

        skip_button = discord.ui.Button(label="Skip", style=discord.ButtonStyle.secondary, emoji="⏭️", row=4)
        skip_button.callback = self._skip_callback
        self.add_item(skip_button)

    def _make_answer_callback(self, index: int):
        async def callback(interaction: discord.Interaction):
            await interaction.response.defer()
            result = await self.controller.submit_answer(
                self.channel_id, interaction.user.id, index, question_index=self.question_index
            )
            await self._report_failure(interaction, result)
        return callback

    async def _skip_callback(self, interaction: discord.Interaction):
        await interaction.response.defer()
        result = await self.controller.skip_question(
            self.channel_id, interaction.user.id, question_index=self.question_index
        )
        await self._report_failure(interaction, result)

    async def _report_failure(self, interaction: discord.Interaction, result: Dict[str, Any]):
        if result['success']:
            return
        try:
            await interaction.followup.send(
                result.get('user_message', result.get('message', 'Unknown error')),
                ephemeral=True
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to send answer rejection: {e}")

    def disable_all(self) -> None:
        for item in self.children:
            item.disabled = True


class DiscordQuizView:
    """Renders one quiz session into a Discord channel."""

    TICK_EDIT_INTERVAL = 5  # seconds between countdown edits while plenty of time is left

    def __init__(self, channel: discord.abc.Messageable, controller: QuizController):
        self.channel = channel
        self.controller = controller
        self.message: Optional[discord.Message] = None
        self.buttons: Optional[AnswerButtons] = None

    async def show_question(self, session: QuizSession) -> None:
        self.buttons = AnswerButtons(self.controller, session)
        self.message = await self.channel.send(embed=build_question_embed(session), view=self.buttons)

    async def show_tick(self, session: QuizSession) -> None:
        if self.message is None or session.answered:
            return
        remaining = session.question_seconds_remaining
        if remaining > 5 and remaining % self.TICK_EDIT_INTERVAL != 0:
            return
        try:
            await self.message.edit(embed=build_question_embed(session))
        except discord.HTTPException as e:
            logger.error(f"Failed to update timer message: {e}")

    async def show_result(self, session: QuizSession, result: AnswerResult) -> None:
        question_number = (self.buttons.question_index if self.buttons else session.current_index) + 1
        embed = build_result_embed(session, result, question_number)
        if self.buttons:
            self.buttons.disable_all()
            self.buttons.stop()
        if self.message is not None:
            await self.message.edit(embed=embed, view=self.buttons)
        else:
            await self.channel.send(embed=embed)

    async def show_completion(self, session: QuizSession, summary: Dict[str, Any]) -> None:
        if self.buttons and not self.buttons.is_finished():
            self.buttons.disable_all()
            self.buttons.stop()
            if self.message is not None:
                try:
                    await self.message.edit(view=self.buttons)
                except discord.HTTPException as e:
                    logger.error(f"Failed to disable answer buttons: {e}")
        await self.channel.send(embed=build_completion_embed(summary))


class QuizBot(commands.Bot):
    """Discord bot for running timed WinQuizz sessions"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.api_client: Optional[QuizApiClient] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.apply_configuration()

            self.data_manager = DataManager(self.config_manager.get_quiz_directory())
            api_settings = self.config_manager.get_api_settings()
            self.api_client = QuizApiClient(api_settings['base_url'], api_settings['token'])
            self.quiz_controller = QuizController(self.data_manager, self.config_manager, self.api_client)

            self.load_quiz_data()
            self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def apply_configuration(self):
        """Apply settings from the configuration file to the config manager."""
        quiz_config = self.app_config.get('quiz', {})
        scoring_config = self.app_config.get('scoring', {})
        api_config = self.app_config.get('api', {})

        results = [
            self.config_manager.set_quiz_directory(quiz_config.get('quiz_directory', './quizzes/')),
            self.config_manager.set_random_order(quiz_config.get('default_random_order', False)),
            self.config_manager.set_timer_duration(
                quiz_config.get('default_timer_duration', ConfigManager.DEFAULT_TIMER_DURATION)
            ),
            self.config_manager.set_reveal_delays(
                quiz_config.get('answer_reveal_delay', 3),
                quiz_config.get('skip_reveal_delay', 2)
            ),
            self.config_manager.set_scoring_rules(
                base_points=scoring_config.get('base_points'),
                wrong_penalty=scoring_config.get('wrong_penalty'),
                skip_penalty=scoring_config.get('skip_penalty'),
                streak_bonuses=scoring_config.get('streak_bonuses')
            ),
            self.config_manager.set_api_settings(api_config.get('base_url'), api_config.get('token'))
        ]

        if quiz_config.get('default_question_count') is not None:
            results.append(self.config_manager.set_question_count(quiz_config['default_question_count']))
        if quiz_config.get('session_duration') is not None:
            results.append(self.config_manager.set_session_duration(quiz_config['session_duration']))

        # Invalid values keep their defaults
        for result in results:
            if not result['success']:
                logger.warning(f"Ignoring configuration value: {result['error']}")

        logger.info("Configuration applied")

    def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List the quizzes you can start")
        async def quizzes_command(interaction: discord.Interaction):
            await self.handle_quizzes(interaction)

        @self.tree.command(name="start", description="Start a timed quiz in this channel")
        async def start_command(interaction: discord.Interaction, quiz_name: Optional[str] = None):
            await self.handle_start(interaction, quiz_name)

        @self.tree.command(name="skip", description="Skip the current question")
        async def skip_command(interaction: discord.Interaction):
            await self.handle_skip(interaction)

        @self.tree.command(name="stop", description="Stop the current quiz session")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show current quiz status and progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="set_questions", description="Set the number of questions for the next quiz")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.handle_set_questions(interaction, number)

        @self.tree.command(name="set_timer", description="Set the timer for each question (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_set_timer(interaction, seconds)

        @self.tree.command(name="random_order", description="Toggle between random and sequential question order")
        async def random_order_command(interaction: discord.Interaction):
            await self.handle_random_order(interaction)

        @self.tree.command(name="fetch_quiz", description="Load a quiz session from the WinQuizz backend")
        async def fetch_quiz_command(interaction: discord.Interaction, session_id: str):
            await self.handle_fetch_quiz(interaction, session_id)

        @self.tree.command(name="leaderboard", description="Show the leaderboard of a contest")
        async def leaderboard_command(interaction: discord.Interaction, contest_id: str):
            await self.handle_leaderboard(interaction, contest_id)

        logger.info("Slash commands registered successfully")

    def load_quiz_data(self):
        """Load quiz files from the quizzes directory"""
        self.data_manager.quiz_directory = Path(self.config_manager.get_quiz_directory())
        loaded_quizzes = self.data_manager.load_quiz_files()
        logger.info(f"Loaded {len(loaded_quizzes)} quizzes from {self.data_manager.quiz_directory}")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            await self.quiz_controller.shutdown()
        await super().close()

    async def handle_discord_api_error(self, error: Exception, operation: str, interaction: discord.Interaction = None) -> None:
        """
        Log a Discord API error and tell the user what went wrong.

        Args:
            error: The Discord API error
            operation: Description of the operation that failed
            interaction: Discord interaction object (optional)
        """
        if isinstance(error, discord.Forbidden):
            logger.error(f"Permission denied during {operation}: {error}")
            message, title = ("Bot doesn't have permission to perform this action. Please check bot permissions.",
                              "❌ Permission Error")
        elif isinstance(error, discord.NotFound):
            logger.error(f"Resource not found during {operation}: {error}")
            message, title = "Channel or message not found. Please try again.", "❌ Not Found"
        elif isinstance(error, discord.HTTPException):
            logger.error(f"Discord API error during {operation}: {error}")
            message, title = "Discord API error occurred. Please try again in a moment.", "❌ Discord Error"
        else:
            logger.error(f"Unexpected error during {operation}: {error}", exc_info=True)
            message, title = "An unexpected error occurred. Please try again.", "❌ Unexpected Error"

        if interaction:
            await self.send_error_response(interaction, message, title)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    # Command handlers
    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 WinQuizz Commands",
                description="Answer fast for a time bonus, keep a streak for extra points!",
                color=0x00ff00
            )
            help_embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/quizzes` - List available quizzes\n"
                    "`/start [quiz_name]` - Start a timed quiz in this channel\n"
                    "`/skip` - Skip the current question\n"
                    "`/stop` - Stop the current quiz\n"
                    "`/status` - Show score, streak and timers"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/set_questions <number>` - Questions per quiz\n"
                    "`/set_timer <seconds>` - Seconds per question (5-300)\n"
                    "`/random_order` - Toggle shuffled questions"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🌐 Online",
                value=(
                    "`/fetch_quiz <session_id>` - Load a contest quiz\n"
                    "`/leaderboard <contest_id>` - Show contest rankings"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            help_embed.set_footer(text="Use slash commands to interact with the bot")

            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "help", interaction)

    async def handle_quizzes(self, interaction: discord.Interaction):
        """Handle /quizzes command"""
        try:
            loading_summary = self.data_manager.get_loading_summary()
            embed = discord.Embed(title="📚 Available Quizzes", color=0x6699ff)

            lines = []
            for name in loading_summary['available_quizzes'][:25]:
                quiz = self.data_manager.get_quiz(name)
                lines.append(f"`{name}` - {quiz.title} ({len(quiz.questions)} questions)")
            embed.description = "\n".join(lines) or "No quizzes loaded."

            if loading_summary['has_errors']:
                error_text = "\n".join(loading_summary['errors'][:3])
                if loading_summary['error_count'] > 3:
                    error_text += "\n... and more"
                embed.add_field(name="⚠️ Loading Issues", value=f"```\n{error_text}\n```", inline=False)

            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "quizzes", interaction)

    async def handle_start(self, interaction: discord.Interaction, quiz_name: Optional[str] = None):
        """Handle /start command"""
        try:
            available_quizzes = self.data_manager.get_available_quizzes()
            if not available_quizzes:
                await self.send_error_response(interaction, "No quizzes are loaded.", "❌ No Quizzes Available")
                return

            quiz_name = quiz_name or available_quizzes[0]
            await interaction.response.defer()

            view = DiscordQuizView(interaction.channel, self.quiz_controller)
            result = await self.quiz_controller.start_quiz(
                interaction.channel_id, interaction.user.id, quiz_name, view
            )

            if result['success']:
                session_info = result['session_info']
                embed = discord.Embed(
                    title="🎯 Quiz Started!",
                    description=f"**{session_info['quiz_name']}** for {interaction.user.mention}",
                    color=0x00ff00
                )
                embed.add_field(
                    name="📊 Quiz Details",
                    value=(
                        f"Questions: {session_info['total_questions']}\n"
                        f"Timer: {session_info['settings']['timer_duration']} seconds per question\n"
                        f"Total time: {_format_seconds(session_info['total_seconds_remaining'])}"
                    ),
                    inline=False
                )
                await interaction.followup.send(embed=embed)
            else:
                await self.send_error_response(
                    interaction,
                    result.get('user_message', result.get('message', 'Unknown error')),
                    "❌ Quiz Start Failed"
                )

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "start_quiz", interaction)

    async def handle_skip(self, interaction: discord.Interaction):
        """Handle /skip command"""
        try:
            await interaction.response.defer(ephemeral=True)
            result = await self.quiz_controller.skip_question(interaction.channel_id, interaction.user.id)
            if result['success']:
                await interaction.followup.send(f"⏭️ {result['message']}", ephemeral=True)
            else:
                await interaction.followup.send(result.get('user_message', result['message']), ephemeral=True)
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "skip", interaction)

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            result = await self.quiz_controller.stop_quiz(interaction.channel_id, interaction.user.id)

            if result['success']:
                session_info = result['session_info']
                embed = discord.Embed(
                    title="🛑 Quiz Stopped",
                    description=f"**{session_info['quiz_name']}** has been ended",
                    color=0xff6600
                )
                embed.add_field(
                    name="📊 Progress",
                    value=(
                        f"Question: {session_info['current_question']}/{session_info['total_questions']}\n"
                        f"Score: {session_info['score']}"
                    ),
                    inline=False
                )
                embed.set_footer(text="Stopped quizzes are not submitted. Use /start to begin a new quiz")
                await interaction.response.send_message(embed=embed)
            else:
                await interaction.response.send_message(
                    result.get('user_message', result['message']), ephemeral=True
                )

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "stop", interaction)

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            summary = self.quiz_controller.get_session_status_summary(interaction.channel_id)
            embed = discord.Embed(title="📊 Quiz Status", description=summary, color=0x6699ff)
            embed.set_footer(text="Use /help to see all available commands")
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "status", interaction)

    async def _send_config_result(self, interaction: discord.Interaction, result: Dict[str, Any], title: str):
        if result['success']:
            embed = discord.Embed(title=title, description=result['user_message'], color=0x00ff00)
            embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            await interaction.response.send_message(embed=embed)
        else:
            await interaction.response.send_message(
                result.get('user_message', f"❌ {result.get('error', 'Unknown error')}"),
                ephemeral=True
            )

    async def handle_set_questions(self, interaction: discord.Interaction, number: int):
        """Handle /set_questions command"""
        try:
            result = self.config_manager.set_question_count(number)
            await self._send_config_result(interaction, result, "✅ Question Count Updated")
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "set_questions", interaction)

    async def handle_set_timer(self, interaction: discord.Interaction, seconds: int):
        """Handle /set_timer command"""
        try:
            result = self.config_manager.set_timer_duration(seconds)
            await self._send_config_result(interaction, result, "✅ Timer Duration Updated")
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "set_timer", interaction)

    async def handle_random_order(self, interaction: discord.Interaction):
        """Handle /random_order command"""
        try:
            result = self.config_manager.toggle_random_order()
            await self._send_config_result(interaction, result, "✅ Question Order Updated")
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "random_order", interaction)

    async def handle_fetch_quiz(self, interaction: discord.Interaction, session_id: str):
        """Handle /fetch_quiz command"""
        try:
            if not self.api_client.enabled:
                await self.send_error_response(
                    interaction, "No WinQuizz backend is configured.", "❌ Backend Disabled"
                )
                return

            await interaction.response.defer()
            try:
                data = await self.api_client.fetch_quiz(session_id)
                quiz = self.data_manager.register_remote_quiz(session_id, data)
            except (QuizApiError, QuizFormatError) as e:
                logger.warning(f"Could not load remote quiz {session_id}: {e}")
                await self.send_error_response(interaction, f"Could not load quiz: {e}", "❌ Fetch Failed")
                return

            await interaction.followup.send(
                f"✅ Loaded **{quiz.title}** with {len(quiz.questions)} questions. "
                f"Start it with `/start quiz_name:{quiz.name}`"
            )

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "fetch_quiz", interaction)

    async def handle_leaderboard(self, interaction: discord.Interaction, contest_id: str):
        """Handle /leaderboard command"""
        try:
            if not self.api_client.enabled:
                await self.send_error_response(
                    interaction, "No WinQuizz backend is configured.", "❌ Backend Disabled"
                )
                return

            await interaction.response.defer()
            try:
                entries = await self.api_client.fetch_leaderboard(contest_id)
            except QuizApiError as e:
                logger.warning(f"Could not load leaderboard {contest_id}: {e}")
                await self.send_error_response(interaction, f"Could not load leaderboard: {e}", "❌ Leaderboard")
                return

            embed = discord.Embed(title=f"🏆 Leaderboard - {contest_id}", color=0xffd700)
            lines = [
                f"**#{entry.get('rank', i + 1)}** {entry.get('username', 'unknown')} - {entry.get('score', 0)}"
                + (f" ({entry['prize']})" if entry.get('prize') else "")
                for i, entry in enumerate(entries)
            ]
            embed.description = "\n".join(lines) or "No entries yet."
            await interaction.followup.send(embed=embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "leaderboard", interaction)


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting WinQuizz bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
