"""Install the authorization model and optionally seed demo subjects and posts."""

import json

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from authentication.services import SubjectService
from posts.models import Post
from rebac.engine import configured_model_path, get_engine, install_authorization_model
from rebac.exceptions import AuthorizationDenied, SchemaError
from rebac.identifiers import post_ref, user_ref
from rebac.policy import Operation

DEMO_USERS = [
    # (email, password, extra roles granted by the first admin)
    ("admin@example.com", "adminpass", ()),
    ("editor@example.com", "editorpass", ("editor",)),
    ("moderator@example.com", "moderatorpass", ("moderator",)),
    ("viewer@example.com", "viewerpass", ()),
]


def install_model(path=None):
    """Install the configured (or given) model file into the running engine."""
    path = path or configured_model_path()
    try:
        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, ValueError) as exc:
        raise SchemaError(f"Cannot read authorization model {path}: {exc}") from exc
    return install_authorization_model(get_engine(), document)


def create_demo_subjects() -> dict:
    """Create the demo users in order; the first one becomes org admin if nobody has."""
    User = get_user_model()
    orchestrator = get_engine().orchestrator
    users = {}
    for email, password, _ in DEMO_USERS:
        user = User.objects.filter(email=email).first()
        if user is None:
            user, _role = SubjectService.register(email=email, password=password)
        users[email] = user

    admin = users["admin@example.com"]
    for email, _, roles in DEMO_USERS:
        for role in roles:
            orchestrator.require(
                Operation.MANAGE_ROLE,
                user_ref(admin.pk),
                {"target": user_ref(users[email].pk), "role": role, "action": "grant"},
            )
    return users


def create_demo_posts(users: dict) -> list:
    """Create one draft and one published post owned by the demo editor."""
    orchestrator = get_engine().orchestrator
    editor = users["editor@example.com"]
    posts = []
    for title, publish in (("Editor Draft", False), ("Editor Published", True)):
        post = Post.objects.filter(title=title, owner=editor).first()
        if post is None:
            with transaction.atomic():
                post = Post.objects.create(title=title, content=f"{title} body.", owner=editor)
                orchestrator.require(Operation.CREATE, user_ref(editor.pk), {"post": post_ref(post.pk)})
        if publish and post.status != Post.Status.PUBLISHED:
            post.status = Post.Status.PUBLISHED
            post.save(update_fields=["status", "updated_at"])
        posts.append(post)
    return posts


class Command(BaseCommand):
    """Management command wrapping the bootstrap hook."""

    help = (
        "Install the authorization model (idempotent; tuples are kept). "
        "Use --demo to seed demo users and posts, --reset to remove them first."
    )

    def add_arguments(self, parser):
        parser.add_argument("--model", help="Path to an authorization model JSON file.")
        parser.add_argument("--demo", action="store_true", help="Seed demo users and posts.")
        parser.add_argument("--reset", action="store_true", help="Remove demo posts and their tuples first.")

    def handle(self, *args, **options):
        try:
            record = install_model(options.get("model"))
        except SchemaError as exc:
            raise CommandError(exc.message) from exc
        self.stdout.write(f"Authorization model {record.digest[:12]} active.")

        if options.get("reset"):
            self._reset_demo_posts()

        if options.get("demo"):
            try:
                users = create_demo_subjects()
            except AuthorizationDenied as exc:
                raise CommandError(
                    "admin@example.com is not the org admin; another subject claimed it first."
                ) from exc
            create_demo_posts(users)
            self.stdout.write(self.style.SUCCESS(f"Seeded {len(users)} demo users."))

    def _reset_demo_posts(self) -> None:
        """Delete posts owned by demo users together with their tuples."""
        orchestrator = get_engine().orchestrator
        emails = [email for email, _, _ in DEMO_USERS]
        with transaction.atomic():
            for post in Post.objects.filter(owner__email__in=emails):
                ref = post_ref(post.pk)
                post.delete()
                orchestrator.forget_content(ref)
        self.stdout.write(self.style.WARNING("Demo posts cleared."))
