"""Post endpoints; every lifecycle step is decided by the policy orchestrator."""

from django.db import transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.generics import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.response import BaseViewSet, api_response
from rebac.engine import get_engine
from rebac.identifiers import post_ref, user_ref
from rebac.policy import Operation
from .models import Post
from .serializers import GrantEditSerializer, PostSerializer, TransferOwnerSerializer


class PostViewSet(BaseViewSet):
    serializer_class = PostSerializer
    permission_classes = [IsAuthenticated]
    queryset = Post.objects.all()

    @property
    def orchestrator(self):
        return get_engine().orchestrator

    def _subject(self):
        return user_ref(self.request.user.pk)

    def _locked_post(self, pk) -> Post:
        return get_object_or_404(Post.objects.select_for_update(), pk=pk)

    def list(self, request):
        """Published posts plus the caller's own posts, newest first."""
        posts = Post.objects.filter(Q(status=Post.Status.PUBLISHED) | Q(owner=request.user))
        return api_response(PostSerializer(posts, many=True).data)

    def create(self, request):
        """Create a draft owned by the caller (admin, editor or moderator)."""
        serializer = PostSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        # The row and its owner tuple commit together; a deny rolls both back.
        with transaction.atomic():
            post = serializer.save(owner=request.user, status=Post.Status.DRAFT)
            self.orchestrator.require(Operation.CREATE, self._subject(), {"post": post_ref(post.pk)})
        return api_response(PostSerializer(post).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        post = self.get_object()
        self.orchestrator.require(
            Operation.READ, self._subject(), {"post": post_ref(post.pk), "status": post.status}
        )
        return api_response(PostSerializer(post).data)

    def partial_update(self, request, pk=None):
        post = self.get_object()
        self.orchestrator.require(Operation.EDIT, self._subject(), {"post": post_ref(post.pk)})
        serializer = PostSerializer(post, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data)

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    def destroy(self, request, pk=None):
        with transaction.atomic():
            post = self._locked_post(pk)
            ref = post_ref(post.pk)
            self.orchestrator.require(Operation.DELETE, self._subject(), {"post": ref})
            post.delete()
            self.orchestrator.forget_content(ref)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        """Publish a post (admin or moderator)."""
        with transaction.atomic():
            post = self._locked_post(pk)
            self.orchestrator.require(Operation.PUBLISH, self._subject(), {"post": post_ref(post.pk)})
            post.status = Post.Status.PUBLISHED
            post.save(update_fields=["status", "updated_at"])
        return api_response(PostSerializer(post).data)

    @action(detail=True, methods=["post"], url_path="transfer-owner", serializer_class=TransferOwnerSerializer)
    def transfer_owner(self, request, pk=None):
        """Hand the post to another editor (current owner or admin only)."""
        serializer = TransferOwnerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_owner = serializer.validated_data["new_owner_id"]
        with transaction.atomic():
            post = self._locked_post(pk)
            self.orchestrator.require(
                Operation.TRANSFER_OWNERSHIP,
                self._subject(),
                {"post": post_ref(post.pk), "new_owner": user_ref(new_owner.pk)},
            )
            post.owner = new_owner
            post.save(update_fields=["owner", "updated_at"])
        return api_response(PostSerializer(post).data)

    @action(detail=True, methods=["post"], url_path="grant-edit", serializer_class=GrantEditSerializer)
    def grant_edit(self, request, pk=None):
        """Give a moderator edit rights on this post only (admin only)."""
        serializer = GrantEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        moderator = serializer.validated_data["moderator_id"]
        post = self.get_object()
        verdict = self.orchestrator.require(
            Operation.GRANT_EDIT,
            self._subject(),
            {"post": post_ref(post.pk), "target": user_ref(moderator.pk)},
        )
        return api_response({"ok": True, "effects": [str(effect) for effect in verdict.effects]})


__all__ = ["PostViewSet"]
