import os
import threading

import numpy as np
import torch
import torch.nn as nn

from advisory import GHOST_IDS

MODEL_PATH = os.path.join(os.path.dirname(__file__), "advisor_model.pt")


class AdvisorNet(nn.Module):
    """Scores every board cell as a chase target, one output map per ghost."""

    def __init__(self, input_shape, ghost_count=len(GHOST_IDS)):
        super().__init__()
        channels, height, width = input_shape
        self.trunk = nn.Sequential(
            nn.Conv2d(channels, 32, kernel_size=3, padding=1),
            nn.ReLU(inplace=True),
            nn.Conv2d(32, 64, kernel_size=3, padding=1),
            nn.ReLU(inplace=True),
            nn.Conv2d(64, 64, kernel_size=3, padding=1),
            nn.ReLU(inplace=True),
        )
        self.target_head = nn.Conv2d(64, ghost_count, kernel_size=1)

    def forward(self, x):
        return self.target_head(self.trunk(x))


def select_device(name=None):
    """Named device when given, else CUDA, then MPS, then CPU."""
    if name is not None:
        return torch.device(name)
    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def obs_to_tensor(planes, device):
    batch = torch.as_tensor(np.asarray(planes, dtype=np.float32), device=device)
    # A single board gets a batch axis.
    return batch.unsqueeze(0) if batch.dim() == 3 else batch


def load_advisor(model_path, input_shape, device, ghost_count=len(GHOST_IDS)):
    model = AdvisorNet(input_shape, ghost_count).to(device)
    if not model_path or not os.path.exists(model_path):
        return model
    model.load_state_dict(torch.load(model_path, map_location=device))
    return model


def logits_to_targets(logits, walls=None, ghost_ids=GHOST_IDS):
    """Pick the best open cell per ghost from ``(ghosts, H, W)`` scores."""
    logits = np.asarray(logits, dtype=np.float32)
    _, height, width = logits.shape
    if walls is not None:
        blocked = np.asarray(walls, dtype=np.float32) > 0
        if not blocked.all():
            logits = np.where(blocked[None, :, :], -1e9, logits)
    flat = logits.reshape(logits.shape[0], height * width)
    best = flat.argmax(axis=1)
    return {str(gid): [int(idx % width), int(idx // width)] for gid, idx in zip(ghost_ids, best)}


class ModelAdvisor:
    """Advisory provider backed by an AdvisorNet checkpoint.

    Without a checkpoint the network is untrained and its suggestions are
    arbitrary, which the game tolerates.
    """

    def __init__(self, model_path=MODEL_PATH, device=None, ghost_ids=GHOST_IDS):
        self.model_path = model_path
        self.device = select_device(device)
        self.ghost_ids = tuple(ghost_ids)
        self.model = None
        self.input_shape = None
        self.lock = threading.Lock()
        if model_path and os.path.exists(model_path):
            print(f"Loaded advisor from {model_path}")
        else:
            print("Advisor model not found, suggestions are untrained.")

    def __call__(self, request):
        planes = request["planes"]
        shape = (len(planes), len(planes[0]), len(planes[0][0]))
        with self.lock:
            if self.model is None or shape != self.input_shape:
                self.model = load_advisor(self.model_path, shape, self.device, len(self.ghost_ids))
                self.model.eval()
                self.input_shape = shape
            with torch.no_grad():
                logits = self.model(obs_to_tensor(planes, self.device))
        logits = logits.squeeze(0).detach().cpu().numpy()
        return {"targets": logits_to_targets(logits, planes[0], self.ghost_ids)}
