import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation


def plot_trajectory_animation(xs, save_path="mpc_animation.mp4", target=(2.0, 0.0), fps=10):
    """Animate a closed-loop run. ``xs`` rows are (x, y, psi)."""
    xs = np.asarray(xs)
    x_vals, y_vals, psi_vals = xs[:, 0], xs[:, 1], xs[:, 2]

    fig, ax = plt.subplots(figsize=(6, 6))
    pad = 0.5
    ax.set_xlim(min(x_vals.min(), target[0]) - pad, max(x_vals.max(), target[0]) + pad)
    ax.set_ylim(min(y_vals.min(), target[1]) - pad, max(y_vals.max(), target[1]) + pad)
    ax.set_aspect('equal'); ax.grid(True)

    line, = ax.plot([], [], 'b-', lw=2, label='path')
    point, = ax.plot([], [], 'ro', ms=6)
    heading, = ax.plot([], [], 'r-', lw=1.5)
    ax.plot([target[0]], [target[1]], 'gx', ms=10, mew=2, label='target')
    ax.legend()

    arrow = 0.15  # heading marker length [m]

    def init():
        line.set_data([], []); point.set_data([], []); heading.set_data([], [])
        return line, point, heading

    def update(i):
        line.set_data(x_vals[:i + 1], y_vals[:i + 1])
        point.set_data([x_vals[i]], [y_vals[i]])
        heading.set_data([x_vals[i], x_vals[i] + arrow * np.cos(psi_vals[i])],
                         [y_vals[i], y_vals[i] + arrow * np.sin(psi_vals[i])])
        return line, point, heading

    ani = animation.FuncAnimation(fig, update, frames=len(x_vals), init_func=init, blit=True,
                                  interval=int(1000 / max(fps, 1)))

    out = save_path
    try:
        ani.save(save_path, writer='ffmpeg', fps=fps)
        print(f"🎥 saved {save_path}")
    except (RuntimeError, ValueError, FileNotFoundError):
        out = save_path.replace('.mp4', '.gif')
        ani.save(out, writer='pillow', fps=fps)
        print(f"🎞️ ffmpeg unavailable -> saved {out}")
    finally:
        plt.close(fig)

    return out
