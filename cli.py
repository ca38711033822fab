import typer
from rich.console import Console
from rich.table import Table
from typing import Optional
from datetime import datetime

from review_engine.database import SessionLocal, init_db
from review_engine.crud import (
    get_user_tier, set_max_daily_reviews,
    list_topics, get_due_topics, review_topic,
    build_review_queue, complete_session,
    get_learning_model, set_learning_signal, reset_learning_model, export_learning_data,
    record_ai_usage, get_current_usage
)
from review_engine.errors import ReviewEngineError
from review_engine.rate_limit import get_limiter

app = typer.Typer(help="Review Engine CLI - spaced repetition, review queues and AI usage limits")
model_app = typer.Typer(help="Inspect and control a user's learning model")
app.add_typer(model_app, name="model")
console = Console()


def _fail(error: ReviewEngineError):
    console.print(f"[red]✗[/red] {error.message} ({error.code})")
    raise typer.Exit(code=1)


@app.command()
def init():
    """Initialize database tables"""
    init_db()
    console.print("[green]✓[/green] Database initialized successfully!")


@app.command()
def topics(
    user_id: int,
    category: Optional[str] = typer.Option(None, help="Only topics in this category"),
    due: bool = typer.Option(False, help="Only topics due for review")
):
    """List a user's topics with their SM-2 state"""
    db = SessionLocal()
    try:
        rows = get_due_topics(db, user_id) if due else list_topics(db, user_id, category)
        if not rows:
            console.print("[yellow]No topics found.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Mastery")
        table.add_column("EF", justify="right")
        table.add_column("Interval", justify="right")
        table.add_column("Reviews", justify="right")
        table.add_column("Next review")
        for topic in rows:
            table.add_row(
                str(topic.id),
                topic.title,
                topic.mastery_level,
                f"{topic.ease_factor:.2f}",
                f"{topic.review_interval_days}d",
                str(topic.review_count),
                topic.next_review_date.strftime("%Y-%m-%d %H:%M")
            )
        console.print(table)
    finally:
        db.close()


@app.command()
def review(
    user_id: int = typer.Option(..., prompt="User ID"),
    topic_id: int = typer.Option(..., prompt="Topic ID"),
    quality: int = typer.Option(..., prompt="Quality (0-5)"),
    key: Optional[str] = typer.Option(None, help="Idempotency key; resubmitting it does nothing")
):
    """Record a review of one topic"""
    db = SessionLocal()
    try:
        topic = review_topic(db, user_id, topic_id, quality, idempotency_key=key)
        console.print(f"[green]✓[/green] Reviewed '{topic.title}'")
        console.print(f"  Mastery: {topic.mastery_level}")
        console.print(f"  Ease factor: {topic.ease_factor:.2f}")
        console.print(f"  Next review in {topic.review_interval_days} day(s): {topic.next_review_date:%Y-%m-%d}")
    except ReviewEngineError as e:
        _fail(e)
    finally:
        db.close()


@app.command()
def queue(user_id: int):
    """Build today's quick review queue"""
    db = SessionLocal()
    try:
        result = build_review_queue(db, user_id)
        console.print(f"\n[bold]Quick review[/bold] ({result.today_reviews}/{result.max_daily_reviews} reviewed today)")
        if result.limit_reached:
            console.print("[yellow]Daily review limit reached. Come back tomorrow![/yellow]")
            return
        if not result.items:
            console.print("[green]Nothing due for review.[/green]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Topic", style="cyan")
        table.add_column("Question")
        table.add_column("Video")
        for item in result.items:
            table.add_row(item.topic_name, item.question_text, item.video_title or "")
        console.print(table)
        console.print(f"  {result.total_questions} question(s), about {result.estimated_minutes} min")
    finally:
        db.close()


@app.command()
def set_daily_cap(user_id: int, max_daily_reviews: int):
    """Set how many reviews a user gets per day"""
    db = SessionLocal()
    try:
        set_max_daily_reviews(db, user_id, max_daily_reviews)
        console.print(f"[green]✓[/green] Daily review cap set to {max_daily_reviews}")
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()


@app.command()
def complete(user_id: int, session_id: int):
    """Mark a learning session completed"""
    db = SessionLocal()
    try:
        session = complete_session(db, user_id, session_id)
        console.print(f"[green]✓[/green] Session '{session.video_title}' completed at {session.completed_at:%Y-%m-%d %H:%M}")
    except ReviewEngineError as e:
        _fail(e)
    finally:
        db.close()


@model_app.command("show")
def model_show(user_id: int):
    """Show what the learning model has inferred"""
    db = SessionLocal()
    try:
        view = get_learning_model(db, user_id)
        if not view.has_data:
            console.print(f"[yellow]{view.message}[/yellow]")
            return
        console.print("\n[bold]Learning Model[/bold]")
        console.print(f"  Optimal time: {view.optimal_time or '-'}")
        if view.avg_session_duration is not None:
            console.print(f"  Avg session: {view.avg_session_duration / 60:.1f} min")
        console.print(f"  Difficulty sweet spot: {view.difficulty_sweet_spot:.2f}")
        console.print(f"  Sessions analyzed: {view.sessions_analyzed}")
        console.print(f"  Confidence: {view.confidence_score:.2f}")
        console.print(f"  Patterns: {len(view.patterns)}")
        signals = ", ".join(
            f"{name}={'on' if enabled else 'off'}" for name, enabled in view.signals.model_dump().items()
        )
        console.print(f"  Signals: {signals}")
    finally:
        db.close()


@model_app.command("signal")
def model_signal(user_id: int, signal: str, enabled: bool = typer.Option(True, "--on/--off")):
    """Turn one learning signal on or off"""
    db = SessionLocal()
    try:
        set_learning_signal(db, user_id, signal, enabled)
        console.print(f"[green]✓[/green] Signal {signal} {'enabled' if enabled else 'disabled'}")
    except ReviewEngineError as e:
        _fail(e)
    finally:
        db.close()


@model_app.command("reset")
def model_reset(user_id: int):
    """Delete the learning model and its patterns (irreversible!)"""
    confirm = typer.confirm("⚠️  This will DELETE the learning model. Are you sure?")
    if not confirm:
        console.print("[yellow]Cancelled.[/yellow]")
        return
    db = SessionLocal()
    try:
        if reset_learning_model(db, user_id):
            console.print("[green]✓[/green] Learning model reset")
        else:
            console.print("[yellow]No learning model to reset.[/yellow]")
    finally:
        db.close()


@model_app.command("export")
def model_export(user_id: int, output: Optional[str] = typer.Option(None, help="Write JSON to this file")):
    """Export learning data as JSON"""
    db = SessionLocal()
    try:
        data = export_learning_data(db, user_id).model_dump_json(indent=2)
        if output:
            with open(output, "w", encoding="utf-8") as fh:
                fh.write(data)
            console.print(f"[green]✓[/green] Exported to {output}")
        else:
            console.print_json(data)
    finally:
        db.close()


@app.command()
def ai_check(user_id: int, tier: Optional[str] = typer.Option(None, help="Tier override (FREE, PRO)")):
    """Consume one AI request from the user's rate limit and record it"""
    db = SessionLocal()
    try:
        tier = tier or get_user_tier(db, user_id)
        result = get_limiter().check_ai_rate_limit(user_id, tier)
        if not result.allowed:
            console.print(f"[red]✗[/red] AI rate limit exceeded (RATE_LIMITED), resets at {result.reset_at:%H:%M:%S}")
            raise typer.Exit(code=1)
        record_ai_usage(db, user_id)
        console.print(f"[green]✓[/green] Allowed. {result.remaining}/{result.limit} left until {result.reset_at:%H:%M:%S}")
    finally:
        db.close()


@app.command()
def usage(user_id: int):
    """Show AI usage for the current month"""
    db = SessionLocal()
    try:
        current = get_current_usage(db, user_id, datetime.now())
        console.print(
            f"AI requests {current.period_start:%Y-%m-%d} to {current.period_end:%Y-%m-%d}: "
            f"[bold]{current.ai_requests_count}[/bold]"
        )
    finally:
        db.close()


if __name__ == "__main__":
    app()
