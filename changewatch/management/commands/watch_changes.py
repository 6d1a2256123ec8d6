import asyncio

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from changewatch.channels import get_channel
from changewatch.channels.local_channel import LocalChannel
from changewatch.dispatcher import SyncDispatcher
from changewatch.exceptions import UnknownProfile
from changewatch.profiles import available_profiles, get_profile
from changewatch.resources import WatchedResource
from changewatch.stores import get_store
from changewatch.watcher import ChangeWatcher


def parse_resource(arg):
    name, _, field = arg.partition(':')
    if not name:
        raise CommandError(f"Invalid resource {arg!r}")
    if field:
        return WatchedResource(name=name, timestamp_field=field)
    return WatchedResource(name=name)


class Command(BaseCommand):
    help = "Watch backend tables and report whenever their data changes."

    def add_arguments(self, parser):
        parser.add_argument('resources', nargs='*', metavar='TABLE[:TIMESTAMP_FIELD]')
        parser.add_argument('--profile', help=f"Named watch profile ({', '.join(available_profiles())})")
        parser.add_argument('--interval', type=float, help="Poll interval in seconds")
        parser.add_argument('--once', action='store_true', help="Poll once and print the newest markers")

    def handle(self, *args, **options):
        resources, interval = self.resolve(options)

        store = get_store()
        if not store.is_configured():
            raise CommandError("Backend not configured: set SUPABASE_URL and SUPABASE_ANON_KEY")

        if options['once']:
            last_seen = asyncio.run(self.poll_once(resources, store))
            for resource in resources:
                self.stdout.write(f"{resource.name}\t{last_seen.get(resource.name, '-')}")
            return

        self.stdout.write(
            f"Watching {', '.join(str(r) for r in resources)} every {interval or 'default'}s (Ctrl+C to stop)"
        )
        try:
            asyncio.run(self.watch_forever(resources, interval, store))
        except KeyboardInterrupt:
            self.stdout.write("Stopped.")

    def resolve(self, options):
        resources = [parse_resource(arg) for arg in options['resources']]
        interval = options['interval']

        if options['profile']:
            try:
                profile = get_profile(options['profile'])
            except UnknownProfile as exc:
                raise CommandError(str(exc)) from exc
            resources = list(profile.resources) + [
                r for r in resources if r.name not in {p.name for p in profile.resources}
            ]
            if interval is None:
                interval = profile.interval

        if not resources:
            raise CommandError("Give at least one table or --profile")
        if interval is not None and interval <= 0:
            raise CommandError("--interval must be positive")
        return resources, interval

    async def poll_once(self, resources, store):
        watcher = ChangeWatcher(resources, on_change=lambda: None, store=store,
                                channel=LocalChannel(), dispatcher=SyncDispatcher())
        with await watcher.start():
            return watcher.last_seen

    async def watch_forever(self, resources, interval, store):
        def report():
            self.stdout.write(f"[{timezone.localtime():%H:%M:%S}] data updated")

        channel = get_channel()
        watcher = ChangeWatcher(resources, on_change=report, interval=interval, store=store, channel=channel)
        try:
            with await watcher.start() as handle:
                while handle.running:
                    await asyncio.sleep(1)
        finally:
            await channel.close()
