import click

from procure.command import clusters, compare, optimize_command, route
from procure.config import config_group
from procure.utils.logger import setup_logger

setup_logger()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Echo engine logs to stderr.")
def main(verbose: bool) -> None:
    """procure – materials price comparison, purchase plans and trip routes."""
    if verbose:
        setup_logger(verbose=True)


main.add_command(compare)
main.add_command(optimize_command)
main.add_command(route)
main.add_command(clusters)
main.add_command(config_group)
