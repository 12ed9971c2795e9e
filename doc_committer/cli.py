import logging
from typing import Annotated, Optional, TypedDict

import typer
from anystore.cli import ErrorHandler
from anystore.io import smart_open, smart_read
from anystore.logging import configure_logging
from rich.console import Console

from doc_committer import __version__
from doc_committer.dispatcher import Dispatcher
from doc_committer.factories import get_dispatcher
from doc_committer.model.operation import OperationKind
from doc_committer.settings import Settings
from doc_committer.storage.maintenance import prune
from doc_committer.util import parse_metadata

settings = Settings()
cli = typer.Typer(
    no_args_is_help=True,
    pretty_exceptions_enable=settings.debug,
    name="Document Committer",
)
console = Console(stderr=True)


class State(TypedDict):
    dispatcher: Dispatcher | None


STATE: State = {"dispatcher": None}


class Targets(ErrorHandler):
    def __enter__(self) -> Dispatcher:
        super().__enter__()
        if STATE["dispatcher"] is None:
            STATE["dispatcher"] = get_dispatcher()
        return STATE["dispatcher"]


@cli.callback(invoke_without_command=True)
def cli_committer(
    version: Annotated[Optional[bool], typer.Option(..., help="Show version")] = False,
    settings: Annotated[
        Optional[bool], typer.Option(..., help="Show current settings")
    ] = False,
    config: Annotated[
        Optional[str], typer.Option("-c", "--config", help="Targets config (yml)")
    ] = None,
    queue_dir: Annotated[
        Optional[str], typer.Option(..., help="Queue base directory")
    ] = None,
):
    if version:
        console.print(__version__)
        raise typer.Exit()
    settings_ = Settings()
    configure_logging(level=logging.getLevelName(settings_.log_level.upper()))
    if settings:
        console.print(settings_)
        raise typer.Exit()
    STATE["dispatcher"] = None
    with ErrorHandler():
        STATE["dispatcher"] = get_dispatcher(config, queue_dir=queue_dir)


@cli.command("add")
def cli_add(
    reference: str,
    in_uri: Annotated[
        Optional[str], typer.Option("-i", help="Read document content from this uri")
    ] = None,
    metadata: Annotated[
        Optional[list[str]], typer.Option("-m", help="Metadata as `key=value`")
    ] = None,
):
    """
    Queue a document for addition to all targets
    """
    with Targets() as dispatcher:
        content = smart_read(in_uri, "rb") if in_uri else b""
        dispatcher.add(reference, content, parse_metadata(metadata or []))


@cli.command("remove")
def cli_remove(reference: str):
    """
    Queue a document for removal from all targets
    """
    with Targets() as dispatcher:
        dispatcher.remove(reference)


@cli.command("commit")
def cli_commit():
    """
    Deliver all queued operations to their targets
    """
    with Targets() as dispatcher:
        jobs = dispatcher.commit()
        for name, job in jobs.items():
            console.print(
                f"[bold]{name}[/bold]: {job.added} added, {job.removed} removed "
                f"in {job.batches} batches ({job.took})"
            )


@cli.command("status")
def cli_status():
    """
    Show number of pending operations per target
    """
    with Targets() as dispatcher:
        console.print(
            {
                c.name: {k.value: c.queue.count(k) for k in OperationKind}
                for c in dispatcher
            }
        )


@cli.command("ls")
def cli_ls(
    out_uri: Annotated[str, typer.Option("-o")] = "-",
    kind: Annotated[
        Optional[OperationKind], typer.Option(help="Only show this kind")
    ] = None,
):
    """
    List pending operations in delivery order (target, kind, entry, reference)
    """
    with Targets() as dispatcher:
        kinds = [kind] if kind else list(OperationKind)
        with smart_open(out_uri, "wb") as o:
            for committer in dispatcher:
                for k in kinds:
                    for entry in committer.queue.iterate(k):
                        line = "\t".join(
                            (committer.name, k.value, entry.name, entry.reference)
                        )
                        o.write(f"{line}\n".encode())


@cli.command("prune")
def cli_prune():
    """
    Remove empty queue directories
    """
    with Targets() as dispatcher:
        for committer in dispatcher:
            removed = prune(committer.queue)
            console.print(f"[bold]{committer.name}[/bold]: {removed} removed")


@cli.command("clear")
def cli_clear(
    yes: Annotated[bool, typer.Option("--yes", help="Don't ask")] = False,
):
    """
    Delete all pending operations without delivering them
    """
    with Targets() as dispatcher:
        if not yes:
            typer.confirm("Delete all pending operations?", abort=True)
        for committer in dispatcher:
            deleted = committer.queue.clear()
            prune(committer.queue)
            console.print(f"[bold]{committer.name}[/bold]: {deleted} deleted")
