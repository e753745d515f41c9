import click
from marketplace.services.boost_service import expire_old_boosts
from marketplace.services.quote_service import expire_old_quotes


def register_commands(app):

    @app.cli.command('expire-quotes')
    def expire_quotes_command():
        """Expire sent quotes whose validity window has passed."""
        click.echo(f'Expired {expire_old_quotes()} quote(s)')

    @app.cli.command('expire-boosts')
    def expire_boosts_command():
        """Deactivate boosts past their end date."""
        click.echo(f'Deactivated {expire_old_boosts()} boost(s)')

    @app.cli.command('sweep')
    def sweep_command():
        """Run every periodic sweep once."""
        quotes = expire_old_quotes()
        boosts = expire_old_boosts()
        click.echo(f'Expired {quotes} quote(s), deactivated {boosts} boost(s)')
