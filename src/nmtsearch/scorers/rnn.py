# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""A reference attention-based GRU encoder-decoder scorer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import final

import torch
from torch import Tensor
from torch.nn import GRU, Embedding, GRUCell, Linear, Module
from torch.nn.functional import softmax
from typing_extensions import override

from nmtsearch.data import Sentences, VocabularyInfo
from nmtsearch.device import CPU, Device
from nmtsearch.error import InvalidOperationError
from nmtsearch.scorers.tensor import WORDS_KEY, TensorScorer, TensorState


@dataclass(kw_only=True)
class RnnModelConfig:
    """Holds the configuration of a :class:`RnnTranslationModel`."""

    source_vocab_size: int
    """The size of the source vocabulary."""

    target_vocab_size: int
    """The size of the target vocabulary."""

    source_pad_idx: int = 0
    """The source index used to pad sentences."""

    embed_dim: int = 32
    """The dimensionality of the word embeddings."""

    hidden_dim: int = 64
    """The dimensionality of the recurrent states."""


@final
class RnnTranslationModel(Module):
    """Represents a GRU encoder-decoder with dot-product attention."""

    config: RnnModelConfig

    def __init__(
        self, config: RnnModelConfig, *, device: Device | None = None
    ) -> None:
        super().__init__()

        self.config = config

        self.source_embed = Embedding(
            config.source_vocab_size,
            config.embed_dim,
            padding_idx=config.source_pad_idx,
            device=device,
        )

        self.encoder = GRU(
            config.embed_dim, config.hidden_dim, batch_first=True, device=device
        )

        self.init_proj = Linear(config.hidden_dim, config.hidden_dim, device=device)

        self.target_embed = Embedding(
            config.target_vocab_size, config.embed_dim, device=device
        )

        self.decoder_cell = GRUCell(
            config.embed_dim + config.hidden_dim, config.hidden_dim, device=device
        )

        self.query_proj = Linear(config.hidden_dim, config.hidden_dim, bias=False, device=device)  # fmt: skip

        self.output_proj = Linear(
            2 * config.hidden_dim, config.target_vocab_size, device=device
        )

    def encode(self, seqs: Tensor, seq_lens: Tensor) -> tuple[Tensor, Tensor]:
        """
        :param seqs:
            The source sentences. *Shape:* :math:`(N,S)`.
        :param seq_lens:
            The lengths of ``seqs``. *Shape:* :math:`(N)`.

        :returns:
            - The encoder output. *Shape:* :math:`(N,S,H)`.
            - The padding mask, ``True`` at padded positions. *Shape:*
              :math:`(N,S)`.
        """
        # (N, S, E)
        embeds = self.source_embed(seqs)

        # (N, S, H)
        encoder_output, _ = self.encoder(embeds)

        positions = torch.arange(seqs.size(1), device=seqs.device)

        # (S) >= (N, 1) -> (N, S)
        padding_mask = positions >= seq_lens.unsqueeze(-1)

        return encoder_output, padding_mask

    def init_hidden(self, encoder_output: Tensor, padding_mask: Tensor) -> Tensor:
        """Returns the initial decoder state. *Shape:* :math:`(N,H)`."""
        # (N, S, 1)
        weights = (~padding_mask).unsqueeze(-1).to(encoder_output.dtype)

        # (N, H)
        mean = (encoder_output * weights).sum(dim=1) / weights.sum(dim=1)

        return torch.tanh(self.init_proj(mean))

    def decode_step(
        self,
        prev_words: Tensor,
        hidden: Tensor,
        context: Tensor,
        encoder_output: Tensor,
        padding_mask: Tensor,
    ) -> tuple[Tensor, Tensor, Tensor]:
        """
        :param prev_words:
            The last word of each hypothesis. *Shape:* :math:`(N)`.
        :param hidden:
            The decoder state of each hypothesis. *Shape:* :math:`(N,H)`.
        :param context:
            The attention context of the previous step. *Shape:* :math:`(N,H)`.
        :param encoder_output:
            The encoder output of the sentence of each hypothesis. *Shape:*
            :math:`(N,S,H)`.
        :param padding_mask:
            The padding mask of ``encoder_output``. *Shape:* :math:`(N,S)`.

        :returns:
            - The next-word logits. *Shape:* :math:`(N,V)`.
            - The new decoder state. *Shape:* :math:`(N,H)`.
            - The new attention context. *Shape:* :math:`(N,H)`.
        """
        # (N, E)
        embeds = self.target_embed(prev_words)

        # (N, E + H) -> (N, H)
        hidden = self.decoder_cell(torch.cat([embeds, context], dim=-1), hidden)

        # (N, S, H) @ (N, H, 1) -> (N, S)
        attn_scores = torch.bmm(
            encoder_output, self.query_proj(hidden).unsqueeze(-1)
        ).squeeze(-1)

        attn_scores = attn_scores.masked_fill(padding_mask, -torch.inf)

        # (N, S)
        attn_weights = softmax(attn_scores, dim=-1)

        # (N, 1, S) @ (N, S, H) -> (N, H)
        context = torch.bmm(attn_weights.unsqueeze(1), encoder_output).squeeze(1)

        # (N, 2 x H) -> (N, V)
        logits = self.output_proj(torch.cat([hidden, context], dim=-1))

        return logits, hidden, context


@final
class RnnScorer(TensorScorer):
    """Scores target words with a :class:`RnnTranslationModel`."""

    _model: RnnTranslationModel
    _vocab_info: VocabularyInfo
    _encoder_output: Tensor | None
    _padding_mask: Tensor | None

    def __init__(
        self,
        model: RnnTranslationModel,
        vocab_info: VocabularyInfo,
        *,
        device: Device | None = None,
    ) -> None:
        if vocab_info.size != model.config.target_vocab_size:
            raise ValueError(
                f"`vocab_info.size` must be equal to the target vocabulary size of `model` ({model.config.target_vocab_size}), but is {vocab_info.size} instead."
            )

        super().__init__(device or CPU)

        model.eval()

        self._model = model
        self._vocab_info = vocab_info
        self._encoder_output = None
        self._padding_mask = None

    @override
    def _encode(self, sentences: Sentences) -> None:
        seqs, seq_lens = sentences.to_tensor(
            self._model.config.source_pad_idx, self._device
        )

        self._encoder_output, self._padding_mask = self._model.encode(seqs, seq_lens)

    @override
    def _begin_sentence_state(self, state: TensorState, batch_size: int) -> None:
        encoder_output, padding_mask = self._get_encoder_output()

        if encoder_output.size(0) != batch_size:
            raise ValueError(
                f"`batch_size` must be equal to the number of encoded sentences ({encoder_output.size(0)}), but is {batch_size} instead."
            )

        # (N, H)
        state["hidden"] = self._model.init_hidden(encoder_output, padding_mask)

        # (N, H)
        state["context"] = torch.zeros_like(state["hidden"])

        # (N)
        state["batch_idx"] = torch.arange(batch_size, device=self._device)

    @override
    def _step(self, state: TensorState, next_state: TensorState) -> Tensor:
        encoder_output, padding_mask = self._get_encoder_output()

        batch_idx = state["batch_idx"]

        # (B, S, H) -> (N, S, H)
        encoder_output = encoder_output.index_select(dim=0, index=batch_idx)

        # (B, S) -> (N, S)
        padding_mask = padding_mask.index_select(dim=0, index=batch_idx)

        logits, hidden, context = self._model.decode_step(
            state[WORDS_KEY], state["hidden"], state["context"], encoder_output, padding_mask  # fmt: skip
        )

        next_state["hidden"] = hidden
        next_state["context"] = context
        next_state["batch_idx"] = batch_idx

        return logits

    @override
    def _clean_up(self) -> None:
        self._encoder_output = None
        self._padding_mask = None

    def _get_encoder_output(self) -> tuple[Tensor, Tensor]:
        if self._encoder_output is None or self._padding_mask is None:
            raise InvalidOperationError("`encode()` must be called first.")

        return self._encoder_output, self._padding_mask

    @property
    @override
    def vocab_info(self) -> VocabularyInfo:
        return self._vocab_info

    @property
    def model(self) -> RnnTranslationModel:
        return self._model
