"""Train DQN on CartPole with 8 lockstep lanes, then evaluate greedily."""

from lockstep_rl.algorithms.dqn import DQNConfig
from lockstep_rl.env import make
from lockstep_rl.metrics import setup_logging
from lockstep_rl.runner import RunnerConfig, evaluate, train_dqn


def main() -> None:
    setup_logging()

    runner_config = RunnerConfig(
        num_iterations=20_000,
        max_steps_per_iteration=8,
        num_envs=8,
        log_interval=1_000,
        metrics_path="runs/dqn_cartpole/metrics.jsonl",
        seed=42,
    )
    dqn_config = DQNConfig(
        hidden_sizes=(128, 128),
        lr=1e-3,
        discount_factor=0.99,
        train_sequence_length=1,
        max_replayed_sequence_length=10_000,
        target_update_forget_factor=0.995,
        epsilon_greedy=1.0,
        epsilon_end=0.01,
        epsilon_decay_steps=10_000,
    )

    env = make("CartPole-v1", batch_size=runner_config.num_envs, seed=runner_config.seed)
    result = train_dqn(env, dqn_config=dqn_config, runner_config=runner_config)

    eval_env = make("CartPole-v1", batch_size=8, seed=1234)
    metrics = evaluate(result.agent, eval_env, n_episodes=16)
    print(f"Greedy return: {metrics.mean_return:.1f} +/- {metrics.std_return:.1f}")


if __name__ == "__main__":
    main()
