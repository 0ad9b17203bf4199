import os, sys
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from orbfield.swarm import OrbSwarm, SwarmConfig

steps = int(sys.argv[1]) if len(sys.argv) > 1 else 1000
dt = float(sys.argv[2]) if len(sys.argv) > 2 else 0.016

swarm = OrbSwarm(SwarmConfig(), seed=1)
low, high = swarm.radius_bounds()
print('Orbs:', swarm.count)
print('Initial radius bounds: %.4f .. %.4f' % (low, high))

worst_speed = 0.0
lowest, highest = low, high
for frame in range(steps):
    swarm.step(dt)
    worst_speed = max(worst_speed, swarm.speed_error())
    low, high = swarm.radius_bounds()
    lowest = min(lowest, low)
    highest = max(highest, high)

cfg = swarm.config
print('Steps:', steps, 'dt:', dt, 'simulated seconds: %.3f' % swarm.elapsed)
print('Worst speed error: %.3e' % worst_speed)
print('Radius range seen: %.4f .. %.4f (walls %.4f .. %.4f)' % (lowest, highest, cfg.inner_limit, cfg.r_max))
print('Contained?', lowest >= cfg.inner_limit - 1e-9 and highest <= cfg.r_max + 1e-9)
