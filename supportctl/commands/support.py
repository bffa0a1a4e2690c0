import typer

app = typer.Typer(help="Manage limited support reasons")


def _not_empty(value: str) -> str:
    if not value:
        raise typer.BadParameter("must not be empty")
    return value


@app.command("delete")
def delete_limited_support_reason(
    cluster_id: str = typer.Argument(..., metavar="CLUSTER_ID", help="Internal cluster ID"),
    limited_support_reason_id: str = typer.Option(
        ..., "--limited-support-reason-id", "-i",
        callback=_not_empty, help="Limited support reason ID"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d",
        help="Dry-run - connect to OCM but don't send the delete call"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Delete specified limited support reason for a given cluster."""
    from supportctl.modules import ocm, support

    options = support.DeleteOptions(
        cluster_id=cluster_id,
        limited_support_reason_id=limited_support_reason_id,
        dry_run=dry_run,
        verbose=verbose,
    )
    try:
        support.run_delete(options)
    except ocm.OCMError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
