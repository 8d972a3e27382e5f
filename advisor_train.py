import argparse
import os

import numpy as np
import torch
import torch.nn.functional as F
from torch.utils.data import DataLoader, TensorDataset

from advisor_model import MODEL_PATH, AdvisorNet, select_device
from advisory import GHOST_IDS
from chase_env import load_config
from chase_sim import run_episode
from targeting import chase_target


def label_targets(env, ghost_ids=GHOST_IDS):
    """Flat cell index of each ghost's chase target, -1 when it lies off the board."""
    positions = {g.id: g.pos for g in env.ghosts}
    scatter = {g.id: g.scatter_target for g in env.ghosts}
    cfg = env.config
    labels = []
    for gid in ghost_ids:
        x, y = chase_target(
            gid,
            env.player.pos,
            env.player.dir,
            positions,
            scatter_target=scatter.get(gid),
            ambush_offset=cfg["ambush_offset"],
            flank_offset=cfg["flank_offset"],
            feigner_radius=cfg["feigner_radius"],
        )
        if 0 <= x < env.grid_w and 0 <= y < env.grid_h:
            labels.append(y * env.grid_w + x)
        else:
            labels.append(-1)
    return labels


def collect(cfg, episodes, max_ticks, seed):
    obs = []
    labels = []

    def record(env):
        planes, _, _ = env.get_observation()
        obs.append(np.asarray(planes, dtype=np.float32))
        labels.append(label_targets(env))

    for ep in range(episodes):
        result = run_episode(cfg, seed=seed + ep, max_ticks=max_ticks, on_tick=record)
        print(f"  episode {ep + 1}/{episodes}: ticks={result['ticks']} samples={len(obs)}")
    return np.stack(obs), np.asarray(labels, dtype=np.int64)


def target_loss(logits, labels):
    batch, ghosts, height, width = logits.shape
    return F.cross_entropy(
        logits.reshape(batch * ghosts, height * width),
        labels.reshape(-1),
        ignore_index=-1,
    )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--episodes", type=int, default=8)
    parser.add_argument("--max-ticks", type=int, default=1500)
    parser.add_argument("--epochs", type=int, default=5)
    parser.add_argument("--batch", type=int, default=64)
    parser.add_argument("--lr", type=float, default=1e-3)
    parser.add_argument("--val-split", type=float, default=0.1)
    parser.add_argument("--seed", type=int, default=123)
    parser.add_argument("--out", default=MODEL_PATH)
    parser.add_argument("--device", default=None)
    args = parser.parse_args()

    cfg = load_config()
    print(f"Collecting {args.episodes} episodes...")
    obs, labels = collect(cfg, args.episodes, args.max_ticks, args.seed)
    n = len(obs)
    if n == 0:
        raise RuntimeError("No samples to train on.")
    print(f"Loaded samples: {n} | obs shape {obs.shape} | labels shape {labels.shape}")

    rng = np.random.default_rng(args.seed)
    indices = rng.permutation(n)
    split = int(n * (1 - args.val_split))
    train_idx = indices[:split]
    val_idx = indices[split:]

    train_ds = TensorDataset(torch.from_numpy(obs[train_idx]), torch.from_numpy(labels[train_idx]))
    val_ds = TensorDataset(torch.from_numpy(obs[val_idx]), torch.from_numpy(labels[val_idx]))
    train_loader = DataLoader(train_ds, batch_size=args.batch, shuffle=True, drop_last=False)
    val_loader = DataLoader(val_ds, batch_size=args.batch, shuffle=False, drop_last=False)

    device = select_device(args.device)
    model = AdvisorNet(obs.shape[1:], labels.shape[1]).to(device)
    if os.path.exists(args.out):
        model.load_state_dict(torch.load(args.out, map_location=device))
    optimizer = torch.optim.Adam(model.parameters(), lr=args.lr)

    for epoch in range(1, args.epochs + 1):
        model.train()
        total_loss = 0.0
        steps = 0
        for batch_obs, batch_labels in train_loader:
            batch_obs = batch_obs.to(device)
            batch_labels = batch_labels.to(device)
            optimizer.zero_grad()
            loss = target_loss(model(batch_obs), batch_labels)
            loss.backward()
            optimizer.step()
            total_loss += loss.item()
            steps += 1

        model.eval()
        val_loss = 0.0
        hits = 0
        counted = 0
        val_steps = 0
        with torch.no_grad():
            for batch_obs, batch_labels in val_loader:
                batch_obs = batch_obs.to(device)
                batch_labels = batch_labels.to(device)
                logits = model(batch_obs)
                val_loss += target_loss(logits, batch_labels).item()
                pred = logits.flatten(2).argmax(dim=2)
                valid = batch_labels >= 0
                hits += int((pred[valid] == batch_labels[valid]).sum().item())
                counted += int(valid.sum().item())
                val_steps += 1

        line = f"Epoch {epoch:02d} | loss {total_loss / max(1, steps):.4f}"
        if val_steps:
            line += f" | val_loss {val_loss / val_steps:.4f} | val_acc {hits / max(1, counted):.3f}"
        print(line)

    torch.save(model.state_dict(), args.out)
    print(f"Saved advisor to {args.out}")


if __name__ == "__main__":
    main()
