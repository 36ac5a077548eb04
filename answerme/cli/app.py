"""Typer CLI application for question generation and answer checking."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from answerme import __version__
from answerme.config.logging_config import configure_logging
from answerme.config.settings import Settings, get_settings
from answerme.credentials.store import InMemoryCredentialStore
from answerme.generation.service import GenerationService
from answerme.generation.worker import GenerationWorker
from answerme.grading.verifier import is_correct
from answerme.models.credentials import ProviderCredentials
from answerme.models.question import (
    GeneratedQuestion,
    GenerationRequest,
    GenerationResult,
    QuestionDifficulty,
    QuestionType,
    StoredQuestion,
)
from answerme.models.task import GenerationTask, TaskStatus
from answerme.providers.base import ChatCompletionsProvider
from answerme.providers.factory import create_http_client, create_provider_factory
from answerme.providers.retry import RetryPolicy, worst_case_retry_delay
from answerme.storage.memory import InMemoryStorage
from answerme.tasks.base import TaskQueue
from answerme.tasks.factory import create_task_backends

app = typer.Typer(
    name="answerme",
    help="AI question generation and answer checking",
    add_completion=False,
)

console = Console()

# The CLI acts on behalf of a single local user
CLI_OWNER_ID = 1


@dataclass
class Runtime:
    """Services wired together for one CLI invocation."""

    service: GenerationService
    task_queue: TaskQueue


@asynccontextmanager
async def open_runtime(settings: Settings, provider_name: str) -> AsyncIterator[Runtime]:
    """Build the service graph from settings; the HTTP client is closed on exit."""
    client = create_http_client(settings)
    try:
        providers = create_provider_factory(client, settings)
        credentials = InMemoryCredentialStore(settings.credential_secret_key)
        credentials.add(
            CLI_OWNER_ID,
            provider_name,
            settings.ai_api_key or "",
            endpoint=settings.ai_endpoint,
            model=settings.ai_model,
            is_default=True,
        )
        task_queue, progress_store = create_task_backends(settings)
        service = GenerationService(
            providers,
            credentials,
            InMemoryStorage(),
            task_queue,
            progress_store,
            settings,
        )
        yield Runtime(service, task_queue)
    finally:
        await client.aclose()


def require_api_key(settings: Settings) -> None:
    if not settings.ai_api_key:
        console.print("[red]Error:[/red] AI_API_KEY environment variable not set.", style="bold")
        console.print("\nPlease set your API key:\n  export AI_API_KEY='your-key-here'")
        raise typer.Exit(code=1)


@app.command()
def generate(
    subject: str = typer.Option(..., "--subject", "-s", help="Topic of the questions"),
    count: int = typer.Option(5, "--count", "-n", help="Number of questions", min=1, max=200),
    difficulty: QuestionDifficulty = typer.Option(
        QuestionDifficulty.MEDIUM,
        "--difficulty",
        "-d",
        help="Difficulty level",
        case_sensitive=False,
    ),
    question_types: List[str] = typer.Option(
        ["SingleChoice"],
        "--type",
        "-t",
        help="Question types (can specify multiple times: -t SingleChoice -t TrueFalse)",
    ),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Language of the questions"),
    custom_prompt: Optional[str] = typer.Option(None, "--prompt", help="Extra instructions for the model"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider, AI_PROVIDER when omitted"),
    run_async: bool = typer.Option(
        False,
        "--async/--sync",
        help="Run as a background task and poll its progress",
    ),
) -> None:
    """
    Generate questions with the configured AI provider.

    Example:
        answerme generate -s "Algebra" -n 5 -d easy -t SingleChoice
    """
    settings = get_settings()
    configure_logging(settings.log_level, console)
    require_api_key(settings)

    try:
        request = GenerationRequest(
            subject=subject,
            count=count,
            difficulty=difficulty,
            question_types=question_types,
            language=language or settings.default_language,
            custom_prompt=custom_prompt,
        )
    except ValueError as e:
        console.print(f"[red]Invalid request:[/red] {e}", style="bold")
        raise typer.Exit(code=1)

    provider_name = provider or settings.ai_provider
    display_config(request, provider_name, run_async)

    if run_async:
        task = asyncio.run(run_background(settings, provider_name, request))
        display_task(task)
        if task is None or task.status is TaskStatus.FAILED:
            raise typer.Exit(code=1)
        return

    result = asyncio.run(run_sync(settings, provider_name, request))
    display_result(result)
    if not result.success:
        raise typer.Exit(code=1)


async def run_sync(settings: Settings, provider_name: str, request: GenerationRequest) -> GenerationResult:
    async with open_runtime(settings, provider_name) as runtime:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            progress.add_task("[cyan]Generating questions...", total=None)
            return await runtime.service.generate_now(CLI_OWNER_ID, request)


async def run_background(
    settings: Settings, provider_name: str, request: GenerationRequest
) -> GenerationTask | None:
    """Submit a task, run a worker next to it and poll until the task is terminal."""
    async with open_runtime(settings, provider_name) as runtime:
        worker = GenerationWorker(runtime.service, runtime.task_queue, settings)
        stop = asyncio.Event()
        worker_job = asyncio.create_task(worker.run(stop))

        task_id = await runtime.service.start_async(CLI_OWNER_ID, request)
        console.print(f"\n[cyan]Task submitted:[/cyan] {task_id}")

        task = None
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            bar = progress.add_task("[cyan]Waiting for worker...", total=request.count)
            while True:
                task = await runtime.service.get_progress(CLI_OWNER_ID, task_id)
                if task is None:
                    break
                progress.update(bar, completed=task.generated_count, description=f"[cyan]{task.status.value}")
                if task.is_terminal:
                    break
                await asyncio.sleep(settings.queue_poll_interval)

        stop.set()
        await worker_job
        return task


@app.command()
def providers() -> None:
    """List the supported AI providers."""
    settings = get_settings()

    async def collect() -> list[ChatCompletionsProvider]:
        async with httpx.AsyncClient() as client:
            factory = create_provider_factory(client, settings)
            return [factory.get_provider(name) for name in factory.available_providers()]

    table = Table(title="Supported Providers", border_style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Vendor", style="white")
    table.add_column("Default model", style="white")
    table.add_column("Default endpoint", style="white")
    for provider in asyncio.run(collect()):
        table.add_row(provider.name, provider.display_name, provider.default_model, provider.default_endpoint)

    console.print()
    console.print(table)

    http = RetryPolicy.for_http(settings)
    layered = RetryPolicy.for_provider(settings)
    console.print(
        f"\nRetry: {http.max_attempts} HTTP attempts x {layered.max_attempts} provider attempts, "
        f"at most {worst_case_retry_delay(http, layered):.1f}s of backoff"
    )


@app.command("check-key")
def check_key(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider, AI_PROVIDER when omitted"),
) -> None:
    """Check that the configured API key is accepted by the provider."""
    settings = get_settings()
    configure_logging(settings.log_level, console)
    require_api_key(settings)
    provider_name = provider or settings.ai_provider

    async def check() -> bool | None:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            selected = create_provider_factory(client, settings).get_provider(provider_name)
            if selected is None:
                return None
            credentials = ProviderCredentials(
                provider_name=provider_name,
                api_key=settings.ai_api_key,
                endpoint=settings.ai_endpoint,
                model=settings.ai_model,
            )
            return await selected.validate_credentials(credentials)

    valid = asyncio.run(check())
    if valid is None:
        console.print(f"[red]Error:[/red] unsupported provider '{provider_name}'", style="bold")
        raise typer.Exit(code=1)
    if not valid:
        console.print(f"[red]✗[/red] API key rejected by {provider_name}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] API key accepted by {provider_name}")


@app.command()
def grade(
    answer: str = typer.Argument(..., help="The answer to check"),
    correct: str = typer.Option(..., "--correct", "-c", help="Correct answer(s), comma separated or JSON array"),
    question_type: Optional[str] = typer.Option(
        None,
        "--type",
        "-t",
        help="Question type; inferred from the correct answer when omitted",
    ),
    options: List[str] = typer.Option([], "--option", "-o", help="Choice option (can specify multiple times)"),
) -> None:
    """
    Check an answer against a correct answer.

    Example:
        answerme grade "B,A" --correct "A,B" -t MultipleChoice
    """
    parsed_type = QuestionType.parse(question_type) if question_type else None
    if question_type and parsed_type is None:
        console.print(f"[red]Error:[/red] unknown question type '{question_type}'", style="bold")
        raise typer.Exit(code=1)

    question = GeneratedQuestion(question_type=parsed_type, options=options, correct_answer=correct)
    if is_correct(question, answer):
        console.print("[green]✓ Correct[/green]")
    else:
        console.print("[red]✗ Incorrect[/red]")
        raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """Display information about the question generator."""
    info_text = f"""
[bold cyan]AnswerMe Question Generation[/bold cyan]
Version: {__version__}

[bold]Pipeline:[/bold]
  • Providers - OpenAI, Anthropic, DeepSeek, Zhipu, Minimax, custom endpoints
  • Normalizer - Tolerant parsing of model output
  • Orchestrator - Batched generation with two retry layers
  • Task queue - In-memory or Redis background tasks with progress
  • Verifier - Grading for every question type

[bold]Question types:[/bold]
  {", ".join(t.display_name for t in QuestionType)}
    """
    console.print(Panel(info_text, title="AnswerMe Info", border_style="cyan"))


def display_config(request: GenerationRequest, provider_name: str, run_async: bool) -> None:
    """Display the request before generation."""
    table = Table(title="Generation Request", show_header=False, border_style="cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Subject", request.subject)
    table.add_row("Questions", str(request.count))
    table.add_row("Difficulty", request.difficulty.value.capitalize())
    table.add_row("Types", ", ".join(t.display_name for t in request.question_types))
    table.add_row("Language", request.language)
    table.add_row("Provider", provider_name)
    table.add_row("Mode", "background task" if run_async else "synchronous")

    console.print()
    console.print(table)


def display_questions(questions: list[StoredQuestion]) -> None:
    table = Table(title="Generated Questions", border_style="green")
    table.add_column("#", style="cyan")
    table.add_column("Type", style="white")
    table.add_column("Question", style="white")
    table.add_column("Answer", style="green")

    for index, question in enumerate(questions, 1):
        question_type = question.question_type.display_name if question.question_type else "-"
        table.add_row(str(index), question_type, question.question_text, question.correct_answer)

    console.print()
    console.print(table)


def display_result(result: GenerationResult) -> None:
    """Display the outcome of a synchronous run."""
    if result.questions:
        display_questions(result.questions)
    if result.tokens_used is not None:
        console.print(f"\nTokens used: {result.tokens_used}")

    if not result.success:
        console.print(f"\n[red]Generation failed ({result.error_code}):[/red] {result.error_message}", style="bold")
    elif result.partial_success_count is not None:
        console.print(f"\n[yellow]Partial success:[/yellow] {result.error_message}")
    else:
        console.print(f"\n[green bold]Generated {len(result.questions)} questions![/green bold]")


def display_task(task: GenerationTask | None) -> None:
    """Display the final state of a background task."""
    if task is None:
        console.print("\n[red]Task record expired or not found[/red]", style="bold")
        return
    if task.questions:
        display_questions(task.questions)

    status = task.status.value
    if task.error_message:
        console.print(f"\n[yellow]Task {status}:[/yellow] {task.error_message}")
    else:
        console.print(f"\n[green bold]Task {status}: {task.generated_count}/{task.total_count} questions[/green bold]")


@app.callback()
def callback() -> None:
    """
    AnswerMe - Generate exam questions with AI and check answers.
    """
    pass


if __name__ == "__main__":
    app()
