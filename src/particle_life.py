#!/usr/bin/env python3
"""
Particle Life Viewer with Pygame
Runs the simulation in a window: hold the left mouse button to attract particles
"""

import pygame
import numpy as np
from typing import Optional, Tuple
import argparse
import os
from datetime import datetime

from lifesim.config import SimConfig
from lifesim.settings import SimulationSettings
from lifesim.simulation import POINTER_RADIUS, Simulation

BACKGROUND = (24, 24, 37)


def to_rgb(color) -> Tuple[int, int, int]:
    """Float RGBA color -> 8-bit RGB for pygame"""
    return tuple(int(round(c * 255)) for c in color[:3])


class ParticleLifeViewer:
    """Window, input and rendering around a Simulation"""

    def __init__(self, config: SimConfig, settings: SimulationSettings):
        self.config = config
        self.sim = Simulation(config, settings)

        pygame.init()
        self.screen = pygame.display.set_mode((int(config.width), int(config.height)))
        pygame.display.set_caption("Particle Life")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 24)

        # UI state
        self.paused = False
        self.show_info = True
        self.show_velocities = True

    def to_screen(self, point) -> Tuple[int, int]:
        """World coordinates (origin at the centre) -> pixel coordinates"""
        return (int(point[0] + self.config.width / 2),
                int(point[1] + self.config.height / 2))

    def to_world(self, pixel) -> np.ndarray:
        return np.array([pixel[0] - self.config.width / 2,
                         pixel[1] - self.config.height / 2], dtype=float)

    def pointer_target(self) -> Optional[np.ndarray]:
        """Mouse position in world space while the left button is held"""
        if pygame.mouse.get_pressed()[0]:
            return self.to_world(pygame.mouse.get_pos())
        return None

    def save_current_settings(self) -> str:
        """Save current settings with timestamp"""
        os.makedirs("presets", exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"presets/settings_{timestamp}.json"
        self.sim.settings.save(filename)
        return filename

    def draw(self, pointer: Optional[np.ndarray]):
        """Draw the simulation"""
        self.screen.fill(BACKGROUND)

        if self.show_velocities:
            for p in self.sim.particles:
                # Brighter lines for faster particles
                shade = int(255 * np.clip(np.sqrt(np.linalg.norm(p.velocity)) * 0.3, 0.0, 1.0))
                pygame.draw.line(self.screen, (shade, shade, shade),
                                 self.to_screen(p.position),
                                 self.to_screen(p.predicted_position()), 2)

        for p in self.sim.particles:
            pygame.draw.circle(self.screen, to_rgb(p.color),
                               self.to_screen(p.position), max(1, int(p.radius)))

        if pointer is not None:
            pygame.draw.circle(self.screen, (255, 255, 255),
                               self.to_screen(pointer), int(POINTER_RADIUS), 1)

        if self.show_info:
            self.draw_info()

    def draw_info(self):
        """Draw information panel"""
        settings = self.sim.settings
        info_lines = [
            f"FPS: {int(self.clock.get_fps())}",
            f"Particles: {len(self.sim.particles)}",
            f"Species: {settings.species_count}",
            f"Friction: {settings.friction:.2f}",
            f"Interaction radius: {settings.interaction_radius:.0f}",
            f"Overlaps: {self.sim.last_collisions}",
            "",
            "Controls:",
            "Left mouse - Attract particles",
            "SPACE - Pause/Resume",
            "R - Reset positions",
            "N - New random settings",
            "V - Toggle velocity vectors",
            "S - Save current settings",
            "I - Toggle info",
            "Q/ESC - Quit",
        ]

        y = 10
        for line in info_lines:
            if line:
                text = self.font.render(line, True, (200, 200, 200))
                self.screen.blit(text, (10, y))
            y += 25

        if self.paused:
            pause_text = self.font.render("PAUSED", True, (255, 100, 100))
            rect = pause_text.get_rect(center=(int(self.config.width) // 2, 30))
            self.screen.blit(pause_text, rect)

    def handle_events(self) -> bool:
        """Handle pygame events. Returns False to quit."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE or event.key == pygame.K_q:
                    return False

                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused

                elif event.key == pygame.K_r:
                    self.sim.reset()
                    print("Reset particles")

                elif event.key == pygame.K_n:
                    self.sim.set_settings(SimulationSettings.random(self.sim.rng))
                    print("Generated new random settings")

                elif event.key == pygame.K_v:
                    self.show_velocities = not self.show_velocities

                elif event.key == pygame.K_i:
                    self.show_info = not self.show_info

                elif event.key == pygame.K_s:
                    self.save_current_settings()

        return True

    def run(self):
        """Main simulation loop"""
        running = True

        while running:
            running = self.handle_events()

            # Frame time in seconds drives the physics
            dt = self.clock.tick(60) / 1000.0
            pointer = self.pointer_target()

            if not self.paused and dt > 0:
                self.sim.step(dt, pointer)

            self.draw(pointer)
            pygame.display.flip()

        self.sim.close()
        pygame.quit()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Particle Life Simulation')
    parser.add_argument('--load', type=str, help='Path to settings file to load')
    parser.add_argument('--particles', type=int, default=SimConfig.n_particles)
    parser.add_argument('--width', type=float, default=SimConfig.width)
    parser.add_argument('--height', type=float, default=SimConfig.height)
    parser.add_argument('--workers', type=int, default=SimConfig.workers)
    parser.add_argument('--seed', type=int, default=None)
    args = parser.parse_args()

    print("Starting Particle Life Simulation...")
    print("Hold the left mouse button to attract particles, Q to quit")

    config = SimConfig(
        width=args.width,
        height=args.height,
        n_particles=args.particles,
        workers=args.workers,
        seed=args.seed,
        settings_path=args.load,
    )
    settings = SimulationSettings.load_or_random(
        config.settings_path, np.random.RandomState(config.seed)
    )

    viewer = ParticleLifeViewer(config, settings)
    viewer.run()

if __name__ == "__main__":
    main()
