"""
EPP Stream CLI Main Entry Point

Command-line interface for opening EPP connections and exchanging frames.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from epp_stream import StreamSocketConnection, __version__
from epp_stream.config import DEFAULT_TIMEOUT, ConnectionConfig, create_sample_config
from epp_stream.exceptions import EPPError, EPPXMLError
from epp_stream.xml_parser import is_greeting_valid, parse_greeting
from epp_stream_cli.output import OutputFormatter, print_error


# Global state for the CLI session
class CLIState:
    formatter: Optional[OutputFormatter] = None


state = CLIState()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--profile", "-p", default="default", help="Config profile to use")
@click.option("--uri", "-u", help="EPP server URI, e.g. tls://epp.example.test:700")
@click.option("--timeout", type=int, help=f"Connect/read timeout in seconds (default {DEFAULT_TIMEOUT})")
@click.option("--cert", type=click.Path(exists=True), help="Client certificate file")
@click.option("--key", type=click.Path(exists=True), help="Client private key file")
@click.option("--ca", type=click.Path(exists=True), help="CA certificate file")
@click.option("--no-verify", is_flag=True, help="Disable server certificate verification")
@click.option("--format", "-f", type=click.Choice(["table", "json", "xml"]), default="table", help="Output format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config, profile, uri, timeout, cert, key, ca, no_verify, format, quiet, debug):
    """
    EPP Stream CLI - RFC 5734 transport tool

    Open a connection to an EPP server, show its greeting, or send raw
    EPP XML frames.

    \b
    Configuration:
      Use a config file at ~/.epp/config.yaml or specify options on command line.
      Run 'epp-stream config init' to create a sample config file.

    \b
    Examples:
      epp-stream --uri tls://epp.example.test:700 --cert client.crt --key client.key hello
      epp-stream -c config.yaml send login.xml
      epp-stream --profile ote send - < check.xml
    """
    # Setup logging
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    # Setup formatter
    state.formatter = OutputFormatter(format=format, quiet=quiet)

    # Load config
    try:
        if config:
            loaded_config = ConnectionConfig.from_file(Path(config), profile)
        else:
            loaded_config = ConnectionConfig.find_and_load(profile)
    except EPPError as e:
        print_error(f"Configuration error: {e}")
        sys.exit(1)

    # CLI options override config file
    options = dict(loaded_config.transport_options) if loaded_config else {}
    tls = dict(options.get("tls") or {})
    if cert:
        tls["cert_file"] = cert
    if key:
        tls["key_file"] = key
    if ca:
        tls["ca_file"] = ca
    if no_verify:
        tls["verify_server"] = False
    if tls:
        options["tls"] = tls

    # Store in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["uri"] = uri or (loaded_config.uri if loaded_config else None)
    ctx.obj["timeout"] = timeout or (loaded_config.timeout if loaded_config else DEFAULT_TIMEOUT)
    ctx.obj["transport_options"] = options


def get_connection(ctx) -> StreamSocketConnection:
    """
    Build and open a connection from the CLI context.

    Args:
        ctx: Click context

    Returns:
        Open connection with a validated greeting
    """
    uri = ctx.obj.get("uri")
    if not uri:
        print_error("No server URI specified. Use --uri or config file.")
        sys.exit(1)

    try:
        connection = StreamSocketConnection(
            ConnectionConfig(
                uri=uri,
                timeout=ctx.obj.get("timeout", DEFAULT_TIMEOUT),
                transport_options=ctx.obj.get("transport_options", {}),
            ),
            greeting_validator=is_greeting_valid,
        )
        connection.open()
        return connection

    except EPPError as e:
        print_error(f"Connection failed: {e}")
        sys.exit(1)


# =============================================================================
# Config Commands
# =============================================================================

@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option("--path", "-p", type=click.Path(), default="~/.epp/config.yaml", help="Config file path")
def config_init(path):
    """Create sample configuration file."""
    path = Path(path).expanduser()

    # Create parent directory
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists():
        if not click.confirm(f"{path} already exists. Overwrite?"):
            return

    path.write_text(create_sample_config())

    state.formatter.success(f"Created config file: {path}")
    state.formatter.info("Edit the file to configure your EPP connection settings.")


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Show current configuration."""
    tls = ctx.obj.get("transport_options", {}).get("tls", {})
    info = {
        "URI": ctx.obj.get("uri") or "(not set)",
        "Timeout": ctx.obj.get("timeout"),
        "Certificate": tls.get("cert_file") or "(not set)",
        "Key": tls.get("key_file") or "(not set)",
        "CA": tls.get("ca_file") or "(not set)",
        "Verify Server": tls.get("verify_server", True),
    }
    state.formatter.output(info)


# =============================================================================
# Session Commands
# =============================================================================

@cli.command()
@click.pass_context
def hello(ctx):
    """Connect and show the server greeting."""
    connection = get_connection(ctx)
    try:
        greeting = parse_greeting(connection.greeting)
        state.formatter.output(greeting, raw_xml=connection.greeting)
    except EPPXMLError as e:
        print_error(f"Can not parse greeting: {e}")
        sys.exit(1)
    finally:
        connection.close()


@cli.command()
@click.argument("source", type=click.File("rb"))
@click.pass_context
def send(ctx, source):
    """
    Send one EPP frame and print the response frame.

    SOURCE: File containing the EPP XML to send ("-" for stdin).
    """
    payload = source.read()
    if not payload:
        print_error("Nothing to send")
        sys.exit(1)

    connection = get_connection(ctx)
    try:
        response = connection.request(payload)
        print(response.decode("utf-8", errors="replace"))
    except EPPError as e:
        print_error(f"Request failed: {e}")
        sys.exit(1)
    finally:
        connection.close()


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Main entry point."""
    try:
        cli()
    except EPPError as e:
        print_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
